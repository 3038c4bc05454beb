import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.dependencies import get_current_user, get_optional_user
from app.auth.firebase import get_firestore_db
from app.config import POSTS_PER_PAGE, get_access_policy
from app.models.post import (
    CreatePostRequest,
    CreatePostResponse,
    LikeResponse,
    PaginatedPosts,
    Post,
    UpdatePostRequest,
)
from app.services import post_service
from app.services.errors import AccessError
from app.services.permissions import AccessPolicy

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/posts",
    tags=["posts"],
)


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"[POSTS] Error during {action}: {type(e).__name__}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get(
    "",
    response_model=PaginatedPosts,
    summary="List the feed",
    description="Returns posts the caller may see, newest first. Authentication is optional; anonymous callers only see public posts.",
    responses={
        401: {"description": "A token was sent but is invalid"},
        403: {"description": "Site is in restricted mode and the caller is not approved"},
    },
)
def list_feed(
    cursor: Optional[str] = Query(None, description="Id of the last post of the previous page"),
    limit: int = Query(POSTS_PER_PAGE, ge=1, le=50),
    q: Optional[str] = Query(None, max_length=100, description="Search in title and content"),
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> PaginatedPosts:
    try:
        return post_service.list_posts(db, policy, current_user, cursor=cursor, limit=limit, search=q)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("list posts", e)


@router.get(
    "/{post_id}",
    response_model=Post,
    summary="Get a post",
    responses={
        403: {"description": "Caller may not view this post"},
        404: {"description": "Post not found"},
    },
)
def read_post(
    post_id: str,
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> Post:
    try:
        return post_service.get_post(db, policy, current_user, post_id)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("retrieve post", e)


@router.post(
    "",
    response_model=CreatePostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a post",
    description="Requires an admin or an approved user with edit permission.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller may not write posts"},
    },
)
def create_post(
    request: CreatePostRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> CreatePostResponse:
    try:
        post_id = post_service.create_post(db, policy, current_user, request)
        return CreatePostResponse(id=post_id)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("create post", e)


@router.patch(
    "/{post_id}",
    response_model=Post,
    summary="Update a post",
    description="Changes only the fields present in the body and refreshes updatedAt.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller may not write posts"},
        404: {"description": "Post not found"},
    },
)
def update_post(
    post_id: str,
    request: UpdatePostRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> Post:
    try:
        return post_service.update_post(db, policy, current_user, post_id, request)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("update post", e)


@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a post",
    description="Admins only.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Caller is not an admin"},
        404: {"description": "Post not found"},
    },
)
def delete_post(
    post_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> None:
    try:
        post_service.delete_post(db, policy, current_user, post_id)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("delete post", e)


@router.post(
    "/{post_id}/like",
    response_model=LikeResponse,
    summary="Toggle like",
    description="Likes the post, or removes the caller's like if present.",
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        404: {"description": "Post not found"},
        409: {"description": "Too many concurrent updates, retry"},
    },
)
def like_post(
    post_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db=Depends(get_firestore_db),
) -> LikeResponse:
    try:
        return post_service.toggle_like(db, current_user, post_id)
    except AccessError:
        raise
    except Exception as e:
        raise _internal_error("toggle like", e)
