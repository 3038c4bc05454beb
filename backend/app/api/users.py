import logging
from typing import Dict, Any, List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.firebase import get_firebase_auth, get_firestore_db
from app.config import get_access_policy
from app.models.user import AppUser, ApproveUserRequest, EditPermissionRequest, EditPermissionResponse
from app.services import user_service
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)

_ADMIN_RESPONSES = {
    401: {"description": "Unauthorized - Invalid or missing authentication token"},
    403: {"description": "Caller is not an admin"},
}
_TARGET_RESPONSES = {
    **_ADMIN_RESPONSES,
    404: {"description": "User not found"},
}


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"[USERS] Error during {action}: {type(e).__name__}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get(
    "",
    response_model=List[AppUser],
    summary="List users",
    description="Returns every user record, newest first, with effective roles.",
    responses=_ADMIN_RESPONSES,
)
def list_users(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> List[AppUser]:
    try:
        return user_service.list_users(db, policy, current_user)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("list users", e)


@router.post(
    "/{uid}/approve",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Approve a user",
    description="Grants the allowed role and optionally edit permission.",
    responses=_TARGET_RESPONSES,
)
def approve_user(
    uid: str,
    request: Optional[ApproveUserRequest] = Body(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> None:
    can_edit = request.canEdit if request else False
    try:
        user_service.approve_user(db, policy, current_user, uid, can_edit=can_edit)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("approve user", e)


@router.post(
    "/{uid}/revoke",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a user",
    description="Resets the user to the public role without edit permission.",
    responses=_TARGET_RESPONSES,
)
def revoke_user(
    uid: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> None:
    try:
        user_service.revoke_user(db, policy, current_user, uid)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("revoke user", e)


@router.post(
    "/{uid}/edit-permission",
    response_model=EditPermissionResponse,
    summary="Change edit permission",
    description="Sets canEdit to the given value, or flips it when the body omits canEdit.",
    responses=_TARGET_RESPONSES,
)
def change_edit_permission(
    uid: str,
    request: Optional[EditPermissionRequest] = Body(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> EditPermissionResponse:
    try:
        can_edit = user_service.toggle_edit_permission(
            db, policy, current_user, uid,
            can_edit=request.canEdit if request else None,
        )
        return EditPermissionResponse(canEdit=can_edit)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("change edit permission", e)


@router.delete(
    "/{uid}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user",
    description="Deletes the user record and, when it exists, the Firebase Auth account.",
    responses=_TARGET_RESPONSES,
)
def delete_user(
    uid: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
    auth_service=Depends(get_firebase_auth),
) -> None:
    try:
        user_service.delete_user(db, policy, current_user, uid, auth_service)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("delete user", e)
