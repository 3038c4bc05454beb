import os
from functools import lru_cache
from typing import FrozenSet, Optional

from dotenv import load_dotenv

from app.services.permissions import AccessPolicy, normalize_email

load_dotenv()

# Feed page size
POSTS_PER_PAGE = int(os.getenv("POSTS_PER_PAGE", "12"))
# Upper bound on optimistic retries for a single like toggle
LIKE_MAX_ATTEMPTS = int(os.getenv("LIKE_MAX_ATTEMPTS", "5"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Cloudflare R2 (S3-compatible) image storage
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET = os.getenv("R2_BUCKET_NAME", "41blog")
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL", "").rstrip("/")


def parse_admin_emails(raw: Optional[str]) -> FrozenSet[str]:
    """Parse a comma-separated admin email list into a normalized set."""
    if not raw:
        return frozenset()
    return frozenset(filter(None, (normalize_email(e) for e in raw.split(","))))


@lru_cache(maxsize=1)
def get_access_policy() -> AccessPolicy:
    """Build the process-wide access policy from ADMIN_EMAILS.

    The variable is read once; changing it requires a restart.
    NEXT_PUBLIC_ADMIN_EMAILS is accepted for deployments that share an env
    file with the web client.
    """
    raw = os.getenv("ADMIN_EMAILS") or os.getenv("NEXT_PUBLIC_ADMIN_EMAILS", "")
    return AccessPolicy(parse_admin_emails(raw))
