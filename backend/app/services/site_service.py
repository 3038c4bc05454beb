"""Site-wide access mode stored in the `config/site` document."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from app.models.site import SiteConfig, SiteMode
from app.services.firestore_utils import snapshot_to_dict
from app.services.permissions import AccessPolicy
from app.services.user_service import require_admin

logger = logging.getLogger(__name__)

CONFIG_COLLECTION = 'config'
SITE_DOCUMENT = 'site'


def get_site_config(db) -> SiteConfig:
    """Return the current mode, defaulting to open when nothing is stored."""
    doc = db.collection(CONFIG_COLLECTION).document(SITE_DOCUMENT).get()
    if not doc.exists:
        return SiteConfig(mode='open')
    return SiteConfig(**snapshot_to_dict(doc, ('updatedAt',)))


def set_site_mode(db, policy: AccessPolicy, identity: Dict[str, Any], mode: SiteMode) -> SiteConfig:
    acting = require_admin(policy, identity)
    config = SiteConfig(
        mode=mode,
        updatedAt=datetime.now(timezone.utc),
        updatedBy=acting.email,
    )
    db.collection(CONFIG_COLLECTION).document(SITE_DOCUMENT).set(config.model_dump())
    logger.info(f"[SITE] {acting.email} set site mode to {mode}")
    return config
