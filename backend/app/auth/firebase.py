import os
import logging
from pathlib import Path
import firebase_admin
from firebase_admin import credentials, auth, firestore
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _load_private_key() -> str:
    """Read FIREBASE_PRIVATE_KEY, tolerating quotes and escaped newlines."""
    private_key_raw = os.getenv("FIREBASE_PRIVATE_KEY", "")
    if not private_key_raw:
        return ""
    private_key_raw = private_key_raw.strip()
    if (private_key_raw.startswith('"') and private_key_raw.endswith('"')) or \
       (private_key_raw.startswith("'") and private_key_raw.endswith("'")):
        private_key_raw = private_key_raw[1:-1]
    return private_key_raw.replace("\\n", "\n")


def _build_credentials() -> credentials.Certificate:
    firebase_credentials = {
        "type": os.getenv("FIREBASE_TYPE", "service_account"),
        "project_id": os.getenv("FIREBASE_PROJECT_ID"),
        "private_key_id": os.getenv("FIREBASE_PRIVATE_KEY_ID"),
        "private_key": _load_private_key(),
        "client_email": os.getenv("FIREBASE_CLIENT_EMAIL"),
        "client_id": os.getenv("FIREBASE_CLIENT_ID"),
        "auth_uri": os.getenv("FIREBASE_AUTH_URI", "https://accounts.google.com/o/oauth2/auth"),
        "token_uri": os.getenv("FIREBASE_TOKEN_URI", "https://oauth2.googleapis.com/token"),
        "auth_provider_x509_cert_url": os.getenv("FIREBASE_AUTH_PROVIDER_X509_CERT_URL", "https://www.googleapis.com/oauth2/v1/certs"),
        "client_x509_cert_url": os.getenv("FIREBASE_CLIENT_X509_CERT_URL"),
        "universe_domain": os.getenv("FIREBASE_UNIVERSE_DOMAIN", "googleapis.com"),
    }

    required_fields = ["project_id", "private_key", "client_email"]
    missing_fields = [field for field in required_fields if not firebase_credentials.get(field)]

    if not missing_fields:
        return credentials.Certificate(firebase_credentials)

    # Fall back to a service account file
    service_account_path = os.getenv("FIREBASE_CREDENTIALS")
    if not service_account_path:
        raise ValueError(
            f"Firebase credentials are missing. Please set FIREBASE_CREDENTIALS (file path) "
            f"or set all required FIREBASE_* environment variables. Missing fields: {missing_fields}"
        )

    path = Path(service_account_path)
    if not path.is_absolute():
        # Relative paths resolve against the backend directory
        path = Path(__file__).parent.parent.parent / path
    if not path.exists():
        raise FileNotFoundError(
            f"Firebase service account file not found: {path}. "
            f"Please check that the file exists or set all FIREBASE_* environment variables."
        )
    return credentials.Certificate(str(path))


def get_firebase_app() -> firebase_admin.App:
    """Initialize the Firebase Admin SDK on first use and return the app."""
    if not firebase_admin._apps:
        firebase_admin.initialize_app(_build_credentials())
        logger.info("[FIREBASE] Admin SDK initialized")
    return firebase_admin.get_app()


def get_firebase_auth():
    """Get Firebase Auth for verifying identity tokens and deleting accounts.

    Example usage:
        auth_service = get_firebase_auth()
        decoded_token = auth_service.verify_id_token(id_token)

    Returns:
        firebase_admin.auth: module exposing verify_id_token() and delete_user()
    """
    get_firebase_app()
    return auth


def get_firestore_db():
    """Get Firestore database instance."""
    try:
        return firestore.client(get_firebase_app())
    except Exception as e:
        raise RuntimeError(f"Firestore not available: {e}") from e
