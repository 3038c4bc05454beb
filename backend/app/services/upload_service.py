"""
Upload Service

Pre-signed image uploads to R2. The client PUTs the file straight to the
bucket, so the server only checks write permission, validates the declared
type and size, and picks the object key.
"""
import logging
import secrets
import time
from typing import Any, Dict, Optional

from app.config import R2_BUCKET, R2_PUBLIC_URL
from app.models.upload import SignedUploadRequest, SignedUploadResponse
from app.services.errors import ValidationFailed
from app.services.permissions import AccessPolicy
from app.services.post_service import require_writer

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/webp', 'image/heic')
SAFE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'webp', 'heic')
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
URL_EXPIRY_SECONDS = 300


def validate_upload(content_type: str, file_size: int) -> None:
    """Raise ValidationFailed for a disallowed type or a file over 10 MB."""
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed(f"File type not allowed. Allowed: {', '.join(ALLOWED_CONTENT_TYPES)}")
    if file_size > MAX_UPLOAD_BYTES:
        raise ValidationFailed(f"File too large. Max size: {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")


def generate_file_key(file_name: str, now_ms: Optional[int] = None) -> str:
    """Build `posts/<ms timestamp>-<random>.<ext>`, falling back to jpg."""
    ext = file_name.rsplit('.', 1)[-1].lower()
    if ext not in SAFE_EXTENSIONS:
        ext = 'jpg'
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"posts/{now_ms}-{secrets.token_hex(3)}.{ext}"


def create_signed_upload(
    db,
    policy: AccessPolicy,
    identity: Dict[str, Any],
    request: SignedUploadRequest,
    storage,
) -> SignedUploadResponse:
    """Presign a PUT for one image.

    Args:
        db: Firestore client
        policy: Access policy holding the admin list
        identity: Verified token identity
        request: Declared file name, type and size
        storage: S3-compatible client exposing generate_presigned_url()

    Raises:
        Forbidden: if the caller may not write posts
        ValidationFailed: for a disallowed type or an oversized file
    """
    acting = require_writer(db, policy, identity)
    validate_upload(request.contentType, request.fileSize)

    key = generate_file_key(request.fileName)
    upload_url = storage.generate_presigned_url(
        "put_object",
        Params={
            "Bucket": R2_BUCKET,
            "Key": key,
            "ContentType": request.contentType,
            "ContentLength": request.fileSize,
        },
        ExpiresIn=URL_EXPIRY_SECONDS,
    )
    logger.info(f"[UPLOAD] Signed upload {key} for uid {acting.uid} ({request.fileSize} bytes)")
    return SignedUploadResponse(
        uploadUrl=upload_url,
        publicUrl=f"{R2_PUBLIC_URL}/{key}",
        key=key,
    )
