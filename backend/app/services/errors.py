"""Errors raised by the post, user and site workflows.

Each maps to one HTTP status in app.main. A workflow that raises has not
written anything.
"""
from typing import Optional


class AccessError(Exception):
    """Base class for workflow failures."""
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(AccessError):
    """Identity token missing or failed verification."""
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(AccessError):
    """Verified caller lacks the required role or flag.

    Raised without a detail so the response never says which check failed.
    """
    status_code = 403
    default_detail = "Forbidden"


class NotFound(AccessError):
    """Target post, user or whitelist entry does not exist."""
    status_code = 404
    default_detail = "Not found"


class Conflict(AccessError):
    """Target already exists."""
    status_code = 409
    default_detail = "Already exists"


class ValidationFailed(AccessError):
    """Request arguments are well-formed but unusable."""
    status_code = 400
    default_detail = "Invalid request"
