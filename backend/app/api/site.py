import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.firebase import get_firestore_db
from app.config import get_access_policy
from app.models.site import SiteConfig, UpdateSiteModeRequest
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy
from app.services.site_service import get_site_config, set_site_mode

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/site",
    tags=["site"],
)


@router.get(
    "",
    response_model=SiteConfig,
    summary="Get site access mode",
    description="Public; returns `open` when no mode has been set.",
)
def read_site_config(db=Depends(get_firestore_db)) -> SiteConfig:
    try:
        return get_site_config(db)
    except Exception as e:
        logger.error(f"[SITE] Error reading site config: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve site config"
        )


@router.put(
    "",
    response_model=SiteConfig,
    summary="Set site access mode",
    description="Admins only. `restricted` limits all reads to admins and approved users.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller is not an admin"},
    },
)
def update_site_config(
    request: UpdateSiteModeRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> SiteConfig:
    try:
        return set_site_mode(db, policy, current_user, request.mode)
    except AccessError:
        raise
    except Exception as e:
        logger.error(f"[SITE] Error setting site mode: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update site mode"
        )
