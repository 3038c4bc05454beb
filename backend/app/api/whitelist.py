import logging
from typing import Dict, Any, List
from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.firebase import get_firestore_db
from app.config import get_access_policy
from app.models.user import AddWhitelistRequest, WhitelistEntry
from app.services import user_service
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/whitelist",
    tags=["whitelist"],
)


@router.get(
    "",
    response_model=List[WhitelistEntry],
    summary="List pre-approved emails",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller is not an admin"},
    },
)
def get_whitelist(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> List[WhitelistEntry]:
    try:
        return user_service.get_whitelist(db, policy, current_user)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[WHITELIST] Error listing whitelist: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve whitelist"
        )


@router.post(
    "",
    response_model=WhitelistEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Pre-approve an email",
    description="The role and edit permission are applied when the email first logs in.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller is not an admin"},
        409: {"description": "Email is already whitelisted"},
    },
)
def add_to_whitelist(
    request: AddWhitelistRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> WhitelistEntry:
    try:
        return user_service.add_to_whitelist(
            db, policy, current_user,
            email=request.email,
            role=request.role,
            can_edit=request.canEdit,
        )
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[WHITELIST] Error adding entry: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add whitelist entry"
        )


@router.delete(
    "/{email}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a pre-approved email",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller is not an admin"},
        404: {"description": "Whitelist entry not found"},
    },
)
def remove_from_whitelist(
    email: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> None:
    try:
        user_service.remove_from_whitelist(db, policy, current_user, email)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[WHITELIST] Error removing entry: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove whitelist entry"
        )
