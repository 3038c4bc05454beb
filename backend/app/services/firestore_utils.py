"""Helpers shared by the services that read Firestore documents."""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.services.permissions import normalize_email


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """Convert a Firestore Timestamp, datetime or ISO string to an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if hasattr(value, 'timestamp'):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_utc_datetime(parsed)
    return None


def snapshot_to_dict(doc, timestamp_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """Return a document's fields with timestamp fields normalized."""
    data = doc.to_dict() or {}
    for field in timestamp_fields:
        if field in data:
            data[field] = to_utc_datetime(data[field])
    return data


def normalize_email_list(emails: Iterable[str]) -> List[str]:
    """Lower-case, trim and de-duplicate emails, keeping first-seen order."""
    seen = {}
    for email in emails or []:
        normalized = normalize_email(email)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)
