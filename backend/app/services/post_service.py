"""
Post Service

Guarded create/update/delete of posts, like toggling and the feed. Each
mutation asks the access policy first and writes nothing when refused.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition, NotFound as DocumentNotFound

from app.config import LIKE_MAX_ATTEMPTS, POSTS_PER_PAGE
from app.models.post import CreatePostRequest, LikeResponse, PaginatedPosts, Post, UpdatePostRequest
from app.models.user import AppUser
from app.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.services.firestore_utils import normalize_email_list, snapshot_to_dict
from app.services.permissions import AccessPolicy, normalize_email
from app.services.site_service import get_site_config
from app.services.user_service import identity_uid, identity_user, load_acting_user, load_viewer

logger = logging.getLogger(__name__)

POSTS_COLLECTION = 'posts'

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def post_from_snapshot(doc) -> Post:
    data = snapshot_to_dict(doc, ('createdAt', 'updatedAt'))
    data['id'] = doc.id
    data['likedBy'] = data.get('likedBy') or []
    data['allowedUsers'] = data.get('allowedUsers') or []
    data['likesCount'] = data.get('likesCount') or 0
    return Post(**data)


def require_writer(db, policy: AccessPolicy, identity: Dict[str, Any]) -> AppUser:
    acting = load_acting_user(db, policy, identity)
    if not policy.can_write_post(acting):
        logger.warning(f"[POSTS] Write refused for uid {acting.uid} (role={acting.role})")
        raise Forbidden()
    return acting


def create_post(db, policy: AccessPolicy, identity: Dict[str, Any], request: CreatePostRequest) -> str:
    """Create a post authored by the caller.

    The author's email and name are copied onto the post and never
    re-synced afterwards.

    Returns:
        str: The new post id
    """
    acting = require_writer(db, policy, identity)

    email = identity.get('email') or ''
    now = datetime.now(timezone.utc)
    post_data = {
        'title': request.title.strip(),
        'content': request.content.strip(),
        'images': list(request.images),
        'location': request.location.model_dump() if request.location else None,
        'createdAt': now,
        'updatedAt': now,
        'createdBy': acting.uid,
        'createdByEmail': email,
        'createdByName': identity.get('name') or email,
        'visibility': request.visibility,
        'allowedUsers': normalize_email_list(request.allowedUsers),
        'likesCount': 0,
        'likedBy': [],
    }
    if not post_data['title']:
        raise ValidationFailed("Title must not be empty")

    _, post_ref = db.collection(POSTS_COLLECTION).add(post_data)
    logger.info(f"[POSTS] Created post {post_ref.id} by uid {acting.uid}")
    return post_ref.id


def update_post(
    db,
    policy: AccessPolicy,
    identity: Dict[str, Any],
    post_id: str,
    request: UpdatePostRequest,
) -> Post:
    """Merge the provided fields into a post and refresh updatedAt."""
    require_writer(db, policy, identity)

    provided = request.model_dump(exclude_unset=True)
    updates: Dict[str, Any] = {}
    for field, value in provided.items():
        # location may be cleared with null, other fields may not
        if value is None and field != 'location':
            continue
        if field in ('title', 'content'):
            value = value.strip()
        elif field == 'allowedUsers':
            value = normalize_email_list(value)
        updates[field] = value
    if 'title' in updates and not updates['title']:
        raise ValidationFailed("Title must not be empty")
    updates['updatedAt'] = datetime.now(timezone.utc)

    post_ref = db.collection(POSTS_COLLECTION).document(post_id)
    try:
        post_ref.update(updates)
    except DocumentNotFound as e:
        raise NotFound("Post not found") from e

    logger.info(f"[POSTS] Updated post {post_id} fields={sorted(updates)}")
    return post_from_snapshot(post_ref.get())


def delete_post(db, policy: AccessPolicy, identity: Dict[str, Any], post_id: str) -> None:
    """Delete a post. Only admins may delete, whoever wrote the post."""
    acting = identity_user(policy, identity)
    if not policy.can_delete_post(acting):
        logger.warning(f"[POSTS] Delete of {post_id} refused for uid {acting.uid}")
        raise Forbidden()

    post_ref = db.collection(POSTS_COLLECTION).document(post_id)
    if not post_ref.get().exists:
        raise NotFound("Post not found")
    post_ref.delete()
    logger.info(f"[POSTS] Deleted post {post_id}")


def toggle_like(
    db,
    identity: Dict[str, Any],
    post_id: str,
    max_attempts: int = LIKE_MAX_ATTEMPTS,
) -> LikeResponse:
    """Add or remove the caller's like.

    The write is conditioned on the document's update time at read, so a
    concurrent toggle makes it fail and the read-modify-write is repeated.
    likesCount is always written as len(likedBy).

    Raises:
        NotFound: if the post does not exist
        Conflict: if every attempt lost a race
    """
    uid = identity_uid(identity)
    post_ref = db.collection(POSTS_COLLECTION).document(post_id)

    for attempt in range(1, max_attempts + 1):
        snapshot = post_ref.get()
        if not snapshot.exists:
            raise NotFound("Post not found")

        # dict.fromkeys drops duplicates left by older writers
        liked_by: List[str] = list(dict.fromkeys((snapshot.to_dict() or {}).get('likedBy') or []))
        if uid in liked_by:
            liked_by.remove(uid)
            liked = False
        else:
            liked_by.append(uid)
            liked = True

        try:
            post_ref.update(
                {'likedBy': liked_by, 'likesCount': len(liked_by)},
                option=db.write_option(last_update_time=snapshot.update_time),
            )
        except FailedPrecondition:
            logger.info(f"[POSTS] Like on {post_id} raced (attempt {attempt}/{max_attempts})")
            continue
        except DocumentNotFound as e:
            raise NotFound("Post not found") from e

        return LikeResponse(liked=liked, count=len(liked_by))

    raise Conflict("Post is being modified, try again")


def get_post(db, policy: AccessPolicy, identity: Optional[Dict[str, Any]], post_id: str) -> Post:
    """Return a single post if the caller may see it."""
    viewer = load_viewer(db, policy, identity)
    if not policy.can_access_site(viewer, get_site_config(db).mode):
        raise Forbidden()

    doc = db.collection(POSTS_COLLECTION).document(post_id).get()
    if not doc.exists:
        raise NotFound("Post not found")
    post = post_from_snapshot(doc)
    if not policy.can_view_post(post, viewer):
        raise Forbidden()
    return post


def _matches(post: Post, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.lower()
    return needle in post.title.lower() or needle in post.content.lower()


def list_posts(
    db,
    policy: AccessPolicy,
    identity: Optional[Dict[str, Any]],
    cursor: Optional[str] = None,
    limit: int = POSTS_PER_PAGE,
    search: Optional[str] = None,
) -> PaginatedPosts:
    """Return one page of the feed, newest first.

    Admins read every post. Anonymous viewers read public posts. Other
    signed-in users read public posts merged with the private posts that
    list their email; Firestore cannot OR across those two filters, so both
    queries run with the same ordering and cursor and are merged here.

    The search term filters the fetched page, so a page may hold fewer
    than `limit` items while hasMore is still true.

    Args:
        cursor: Id of the last post of the previous page
        limit: Page size
        search: Case-insensitive substring matched against title and content
    """
    if limit < 1:
        raise ValidationFailed("limit must be positive")

    viewer = load_viewer(db, policy, identity)
    if not policy.can_access_site(viewer, get_site_config(db).mode):
        raise Forbidden()

    posts_ref = db.collection(POSTS_COLLECTION)
    cursor_doc = None
    if cursor:
        cursor_doc = posts_ref.document(cursor).get()
        # a hidden post must look the same as a missing one
        if not cursor_doc.exists or not policy.can_view_post(post_from_snapshot(cursor_doc), viewer):
            raise ValidationFailed("Unknown cursor")

    if viewer is not None and viewer.role == 'admin':
        queries = [posts_ref]
    else:
        queries = [posts_ref.where('visibility', '==', 'public')]
        email = normalize_email(viewer.email) if viewer else ''
        if email:
            queries.append(
                posts_ref.where('visibility', '==', 'private')
                .where('allowedUsers', 'array_contains', email)
            )

    fetched: Dict[str, Post] = {}
    for query in queries:
        query = query.order_by('createdAt', direction=firestore.Query.DESCENDING)
        if cursor_doc is not None:
            query = query.start_after(cursor_doc)
        for doc in query.limit(limit + 1).stream():
            fetched[doc.id] = post_from_snapshot(doc)

    ordered = sorted(
        (p for p in fetched.values() if policy.can_view_post(p, viewer)),
        key=lambda p: (p.createdAt or _EPOCH, p.id),
        reverse=True,
    )
    page = ordered[:limit]
    has_more = len(ordered) > limit

    return PaginatedPosts(
        items=[p for p in page if _matches(p, search)],
        nextCursor=page[-1].id if has_more and page else None,
        hasMore=has_more,
    )
