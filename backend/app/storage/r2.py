import logging
from functools import lru_cache

import boto3
from botocore.config import Config

from app.config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_storage_client():
    """Get the S3 client for the Cloudflare R2 image bucket.

    Only used to presign uploads; the API never receives file data.

    Returns:
        botocore S3 client exposing generate_presigned_url()
    """
    if not (R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY):
        logger.warning("[R2] Missing R2 environment variables. Upload URLs will not work.")
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        region_name="auto",
        config=Config(signature_version="s3v4"),
    )
