"""
User Service

Role bootstrap at login, admin user management and the pre-approval
whitelist. Every admin-only workflow checks the caller's token email against
the admin list before touching Firestore.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import AlreadyExists, NotFound as DocumentNotFound

from app.models.user import AppUser, UserRole, WhitelistEntry
from app.services.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from app.services.firestore_utils import snapshot_to_dict
from app.services.permissions import AccessPolicy, normalize_email

logger = logging.getLogger(__name__)

USERS_COLLECTION = 'users'
WHITELIST_COLLECTION = 'whitelist'

_USER_TIMESTAMPS = ('createdAt', 'approvedAt')


def user_from_snapshot(doc) -> AppUser:
    data = snapshot_to_dict(doc, _USER_TIMESTAMPS)
    data['uid'] = doc.id
    data['email'] = data.get('email') or ''
    data['role'] = data.get('role') or 'public'
    data['canEdit'] = bool(data.get('canEdit'))
    return AppUser(**data)


def whitelist_from_snapshot(doc) -> WhitelistEntry:
    return WhitelistEntry(**snapshot_to_dict(doc, ('createdAt',)))


def identity_uid(identity: Optional[Dict[str, Any]]) -> str:
    """Return the verified uid, or raise Unauthenticated when there is none."""
    uid = (identity or {}).get('uid')
    if not uid:
        raise Unauthenticated()
    return uid


def identity_user(policy: AccessPolicy, identity: Dict[str, Any]) -> AppUser:
    """Build a user from token claims alone, with the default role."""
    email = identity.get('email') or ''
    role = policy.resolve_role(email)
    return AppUser(
        uid=identity_uid(identity),
        email=email,
        displayName=identity.get('name'),
        photoURL=identity.get('picture'),
        role=role,
        canEdit=role == 'admin',
    )


def load_acting_user(db, policy: AccessPolicy, identity: Dict[str, Any]) -> AppUser:
    """Load the caller's stored record and re-derive its role from the token email.

    A caller without a stored record is treated as their token claims with
    the default role, so an admin whose record does not exist yet still
    passes admin checks.
    """
    doc = db.collection(USERS_COLLECTION).document(identity_uid(identity)).get()
    if not doc.exists:
        return identity_user(policy, identity)

    stored = user_from_snapshot(doc)
    email = identity.get('email') or stored.email
    return stored.model_copy(update={
        'email': email,
        'role': policy.effective_role(email, stored.role),
    })


def load_viewer(db, policy: AccessPolicy, identity: Optional[Dict[str, Any]]) -> Optional[AppUser]:
    if identity is None:
        return None
    return load_acting_user(db, policy, identity)


def require_admin(policy: AccessPolicy, identity: Dict[str, Any]) -> AppUser:
    """Raise Forbidden unless the token email is on the admin list."""
    acting = identity_user(policy, identity)
    if not policy.can_manage_users(acting):
        logger.warning(f"[USERS] Admin action refused for uid {acting.uid}")
        raise Forbidden()
    return acting


def find_whitelist_entries(db, email: str) -> List[Any]:
    """Return whitelist snapshots whose email field matches."""
    return list(
        db.collection(WHITELIST_COLLECTION)
        .where('email', '==', normalize_email(email))
        .stream()
    )


def bootstrap_user(db, policy: AccessPolicy, identity: Dict[str, Any]) -> AppUser:
    """Create or refresh the caller's user record at login.

    First login: the default role comes from the admin list, then a
    whitelist entry for the email (if any) overrides role and canEdit.
    Later logins only re-derive the role from the admin list and persist it
    when it changed.

    Args:
        db: Firestore client
        policy: Access policy holding the admin list
        identity: Verified token identity (uid, email, name, picture)

    Returns:
        AppUser: The effective user record
    """
    uid = identity_uid(identity)
    email = identity.get('email') or ''
    user_ref = db.collection(USERS_COLLECTION).document(uid)
    doc = user_ref.get()

    if doc.exists:
        stored = user_from_snapshot(doc)
        role = policy.effective_role(email or stored.email, stored.role)
        if role != stored.role:
            user_ref.update({'role': role})
            logger.info(f"[USERS] Role for uid {uid} re-derived: {stored.role} -> {role}")
        return stored.model_copy(update={'role': role})

    new_user = identity_user(policy, identity)
    role: UserRole = new_user.role
    can_edit = new_user.canEdit

    if email:
        entries = find_whitelist_entries(db, email)
        if entries:
            entry = whitelist_from_snapshot(entries[0])
            role = policy.effective_role(email, entry.role)
            can_edit = entry.canEdit
            logger.info(f"[USERS] Whitelist entry applied for uid {uid}: role={role}")

    new_user = new_user.model_copy(update={
        'role': role,
        'canEdit': can_edit,
        'createdAt': datetime.now(timezone.utc),
    })
    user_ref.set(new_user.model_dump(exclude={'approvedAt', 'approvedBy'}))
    logger.info(f"[USERS] Created user record for uid {uid} with role {role}")
    return new_user


def list_users(db, policy: AccessPolicy, identity: Dict[str, Any]) -> List[AppUser]:
    require_admin(policy, identity)
    docs = db.collection(USERS_COLLECTION) \
        .order_by('createdAt', direction=firestore.Query.DESCENDING) \
        .stream()
    return [policy.effective_user(user_from_snapshot(doc)) for doc in docs]


def _update_user(db, uid: str, updates: Dict[str, Any]) -> None:
    try:
        db.collection(USERS_COLLECTION).document(uid).update(updates)
    except DocumentNotFound as e:
        raise NotFound("User not found") from e


def approve_user(db, policy: AccessPolicy, identity: Dict[str, Any], target_uid: str, can_edit: bool = False) -> None:
    acting = require_admin(policy, identity)
    _update_user(db, target_uid, {
        'role': 'allowed',
        'canEdit': can_edit,
        'approvedAt': datetime.now(timezone.utc),
        'approvedBy': acting.email,
    })
    logger.info(f"[USERS] {acting.email} approved uid {target_uid} (canEdit={can_edit})")


def revoke_user(db, policy: AccessPolicy, identity: Dict[str, Any], target_uid: str) -> None:
    acting = require_admin(policy, identity)
    _update_user(db, target_uid, {
        'role': 'public',
        'canEdit': False,
        'approvedAt': None,
        'approvedBy': None,
    })
    logger.info(f"[USERS] {acting.email} revoked uid {target_uid}")


def toggle_edit_permission(
    db,
    policy: AccessPolicy,
    identity: Dict[str, Any],
    target_uid: str,
    can_edit: Optional[bool] = None,
) -> bool:
    """Set a user's canEdit flag, or flip it when can_edit is None.

    Returns:
        bool: The new canEdit value
    """
    require_admin(policy, identity)
    if can_edit is None:
        doc = db.collection(USERS_COLLECTION).document(target_uid).get()
        if not doc.exists:
            raise NotFound("User not found")
        can_edit = not bool((doc.to_dict() or {}).get('canEdit', False))
    _update_user(db, target_uid, {'canEdit': can_edit})
    return can_edit


def delete_user(db, policy: AccessPolicy, identity: Dict[str, Any], target_uid: str, auth_service) -> None:
    """Delete a user record, then try to delete the Firebase Auth account.

    The account may not exist (for example a record added by hand), so that
    second step only logs on failure.
    """
    acting = require_admin(policy, identity)
    user_ref = db.collection(USERS_COLLECTION).document(target_uid)
    if not user_ref.get().exists:
        raise NotFound("User not found")
    user_ref.delete()
    logger.info(f"[USERS] {acting.email} deleted user record {target_uid}")

    try:
        auth_service.delete_user(target_uid)
    except (FirebaseError, ValueError) as e:
        logger.warning(f"[USERS] Could not delete auth account {target_uid}: {e}")


def add_to_whitelist(
    db,
    policy: AccessPolicy,
    identity: Dict[str, Any],
    email: str,
    role: UserRole = 'allowed',
    can_edit: bool = False,
) -> WhitelistEntry:
    """Pre-approve an email. Raises Conflict if it already has an entry.

    Entries are keyed by the normalized email so a concurrent duplicate add
    fails on create().
    """
    acting = require_admin(policy, identity)
    normalized = normalize_email(email)
    if not normalized or '/' in normalized:
        raise ValidationFailed("Invalid email address")
    if find_whitelist_entries(db, normalized):
        raise Conflict("Email is already whitelisted")

    entry = WhitelistEntry(
        email=normalized,
        role=role,
        canEdit=can_edit,
        createdAt=datetime.now(timezone.utc),
        addedBy=acting.email,
    )
    try:
        db.collection(WHITELIST_COLLECTION).document(normalized).create(entry.model_dump())
    except AlreadyExists as e:
        raise Conflict("Email is already whitelisted") from e

    logger.info(f"[WHITELIST] {acting.email} added {normalized} as {role}")
    return entry


def remove_from_whitelist(db, policy: AccessPolicy, identity: Dict[str, Any], email: str) -> None:
    acting = require_admin(policy, identity)
    entries = find_whitelist_entries(db, email)
    if not entries:
        raise NotFound("Whitelist entry not found")
    for doc in entries:
        doc.reference.delete()
    logger.info(f"[WHITELIST] {acting.email} removed {normalize_email(email)}")


def get_whitelist(db, policy: AccessPolicy, identity: Dict[str, Any]) -> List[WhitelistEntry]:
    require_admin(policy, identity)
    docs = db.collection(WHITELIST_COLLECTION) \
        .order_by('createdAt', direction=firestore.Query.DESCENDING) \
        .stream()
    return [whitelist_from_snapshot(doc) for doc in docs]
