import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.firebase import get_firestore_db
from app.config import get_access_policy
from app.models.upload import SignedUploadRequest, SignedUploadResponse
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy
from app.services.upload_service import create_signed_upload
from app.storage.r2 import get_storage_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/upload",
    tags=["upload"],
)


@router.post(
    "/signed-url",
    response_model=SignedUploadResponse,
    summary="Get a pre-signed image upload URL",
    description="Requires an admin or an approved user with edit permission. Accepts JPEG, PNG, WebP and HEIC images up to 10 MB; the URL expires after five minutes.",
    responses={
        400: {"description": "File type not allowed or file too large"},
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller may not write posts"},
    },
)
def create_signed_url(
    request: SignedUploadRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
    storage=Depends(get_storage_client),
) -> SignedUploadResponse:
    try:
        return create_signed_upload(db, policy, current_user, request, storage)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[UPLOAD] Error signing upload: {type(e).__name__}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create upload URL"
        )
