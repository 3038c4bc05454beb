import logging
from typing import Dict, Any, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin.auth import (
    InvalidIdTokenError,
    ExpiredIdTokenError,
    RevokedIdTokenError,
    UserDisabledError,
    CertificateFetchError,
)

from app.auth.firebase import get_firebase_auth

logger = logging.getLogger(__name__)

# Missing credentials are reported as 401 by get_current_user, not by HTTPBearer
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_identity_token(token: str, auth_service) -> Dict[str, Any]:
    """Validate an identity token and return a normalized identity.

    Args:
        token: Raw Firebase ID token
        auth_service: Object exposing verify_id_token()

    Returns:
        Dict[str, Any]: Normalized identity containing:
            - uid: User's unique identifier
            - email: User's email address (if available)
            - email_verified: Whether email is verified
            - name: User's display name (if available)
            - picture: User's photo URL (if available)

    Raises:
        HTTPException:
            - 401 if the token is invalid, expired, revoked or malformed
            - 503 if certificates for validation cannot be fetched
    """
    try:
        # check_revoked=False still validates signature and expiry
        decoded_token = auth_service.verify_id_token(token, check_revoked=False)
    except (InvalidIdTokenError, ExpiredIdTokenError) as e:
        logger.info(f"[AUTH] Token validation failed: {type(e).__name__}")
        raise _unauthorized("Invalid or expired authentication token") from e
    except RevokedIdTokenError as e:
        raise _unauthorized("Authentication token has been revoked") from e
    except UserDisabledError as e:
        raise _unauthorized("User account has been disabled") from e
    except CertificateFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service temporarily unavailable",
        ) from e
    except ValueError as e:
        logger.info(f"[AUTH] Token format error: {e}")
        raise _unauthorized("Invalid authentication token format") from e

    logger.debug(f"[AUTH] Token verified for uid: {decoded_token.get('uid')}")
    return {
        "uid": decoded_token["uid"],
        "email": decoded_token.get("email"),
        "email_verified": decoded_token.get("email_verified", False),
        "name": decoded_token.get("name"),
        "picture": decoded_token.get("picture"),
    }


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service=Depends(get_firebase_auth),
) -> Dict[str, Any]:
    """Require a bearer token and return the verified identity.

    Rejects the request with 401 when the Authorization header is missing
    or the token fails verification.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentication token is required")
    return verify_identity_token(credentials.credentials, auth_service)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service=Depends(get_firebase_auth),
) -> Optional[Dict[str, Any]]:
    """Like get_current_user, but anonymous requests yield None.

    A token that is present but invalid is still rejected with 401.
    """
    if credentials is None or not credentials.credentials:
        return None
    return verify_identity_token(credentials.credentials, auth_service)
