import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.firebase import get_firestore_db
from app.config import get_access_policy
from app.models.user import AppUser
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy
from app.services.user_service import bootstrap_user, load_acting_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/me",
    tags=["user"],
)


@router.post(
    "/session",
    response_model=AppUser,
    summary="Register a login",
    description="Creates the caller's user record on first login (applying any whitelist entry) and re-derives the admin role on later logins.",
    responses={
        200: {
            "description": "Effective user record",
            "content": {
                "application/json": {
                    "example": {
                        "uid": "user123",
                        "email": "user@example.com",
                        "displayName": "John Doe",
                        "role": "allowed",
                        "canEdit": True,
                        "createdAt": "2026-01-16T03:00:00Z",
                    }
                }
            },
        },
        401: {
            "description": "Unauthorized - Invalid or missing authentication token",
        },
    },
)
def start_session(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> AppUser:
    """Bootstrap or refresh the caller's user record.

    Args:
        current_user: The authenticated user object (injected via dependency)

    Returns:
        AppUser: The stored record with its effective role
    """
    try:
        return bootstrap_user(db, policy, current_user)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[ME] Error bootstrapping user {current_user.get('uid')}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start session"
        )


@router.get(
    "",
    response_model=AppUser,
    summary="Get current user profile",
    description="Returns the caller's user record with the role re-derived from the admin list. Callers without a record get their token claims and the default role.",
    responses={
        401: {
            "description": "Unauthorized - Invalid or missing authentication token",
        },
    },
)
def get_me(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> AppUser:
    try:
        return load_acting_user(db, policy, current_user)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[ME] Error fetching user profile: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve user profile"
        )
