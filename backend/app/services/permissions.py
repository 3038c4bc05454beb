"""
Access Control Evaluator

Pure decision functions for role resolution and permission checks. Nothing
in this module performs I/O: callers load users and posts and pass them in.

The admin email set is injected at construction. `admin` is never read from
storage; it is re-derived from the set on every check, so removing an email
from ADMIN_EMAILS demotes that user immediately.
"""
from typing import FrozenSet, Iterable, Optional

from app.models.post import Post
from app.models.site import SiteMode
from app.models.user import AppUser, UserRole


def normalize_email(email: Optional[str]) -> str:
    """Normalize email by trimming whitespace and converting to lowercase."""
    return (email or "").strip().lower()


class AccessPolicy:
    """Permission checks bound to a fixed set of admin emails."""

    def __init__(self, admin_emails: Iterable[str] = ()):
        self._admin_emails: FrozenSet[str] = frozenset(
            normalize_email(e) for e in admin_emails if normalize_email(e)
        )

    @property
    def admin_emails(self) -> FrozenSet[str]:
        return self._admin_emails

    # Role resolution

    def resolve_role(self, email: Optional[str]) -> UserRole:
        """Default role for an email: `admin` or `public`, never `allowed`.

        `allowed` only comes from a stored user or whitelist record, which
        the caller merges in.
        """
        normalized = normalize_email(email)
        if normalized and normalized in self._admin_emails:
            return "admin"
        return "public"

    def is_admin(self, email: Optional[str]) -> bool:
        return self.resolve_role(email) == "admin"

    def effective_role(self, email: Optional[str], stored_role: Optional[str]) -> UserRole:
        """Combine the admin list with a stored role.

        A persisted `admin` that is no longer backed by the admin list falls
        back to `public`.
        """
        if self.is_admin(email):
            return "admin"
        if stored_role == "allowed":
            return "allowed"
        return "public"

    def effective_user(self, user: AppUser) -> AppUser:
        """Return a copy of a stored user with its role re-derived."""
        role = self.effective_role(user.email, user.role)
        if role == user.role:
            return user
        return user.model_copy(update={"role": role})

    # Post permissions

    def can_view_post(self, post: Post, user: Optional[AppUser]) -> bool:
        """Public posts are visible to everyone, private ones to admins and
        the emails on the post's allowedUsers list.

        An `allowed` role is necessary context but not sufficient: the email
        must be listed on this specific post.
        """
        if post.visibility == "public":
            return True
        if user is None:
            return False
        if user.role == "admin":
            return True
        email = normalize_email(user.email)
        if not email:
            return False
        return email in {normalize_email(e) for e in post.allowedUsers}

    def can_write_post(self, user: Optional[AppUser]) -> bool:
        if user is None:
            return False
        if user.role == "admin":
            return True
        return user.role == "allowed" and user.canEdit

    def can_delete_post(self, user: Optional[AppUser]) -> bool:
        """Only admins delete posts. Authorship does not matter."""
        return user is not None and user.role == "admin"

    def can_manage_users(self, user: Optional[AppUser]) -> bool:
        return user is not None and user.role == "admin"

    def can_access_site(self, user: Optional[AppUser], mode: SiteMode) -> bool:
        """In restricted mode only admins and approved users may read."""
        if mode == "open":
            return True
        return user is not None and user.role in ("admin", "allowed")

    # Likes

    @staticmethod
    def has_liked(post: Post, uid: Optional[str]) -> bool:
        if not uid:
            return False
        return uid in post.likedBy
