from typing import List, Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime


PostVisibility = Literal["public", "private"]


class GpsLocation(BaseModel):
    """GPS coordinates captured when the post was written."""
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    accuracy: Optional[float] = Field(None, ge=0.0, description="Accuracy radius in meters")


class Post(BaseModel):
    """Model representing a post in the `posts` collection.

    Author fields are a snapshot taken at creation and are not re-synced
    when the author's profile changes. likesCount always equals the
    length of likedBy.
    """
    id: str = Field(..., description="Post document id")
    title: str = Field(..., description="Post title")
    content: str = Field("", description="Post body")
    images: List[str] = Field(default_factory=list, description="Image URLs in upload order")
    location: Optional[GpsLocation] = Field(None, description="Where the post was written")
    createdAt: Optional[datetime] = Field(None, description="When the post was created")
    updatedAt: Optional[datetime] = Field(None, description="When the post was last modified")
    createdBy: str = Field(..., description="Author uid")
    createdByEmail: str = Field("", description="Author email at creation time")
    createdByName: str = Field("", description="Author display name at creation time")
    visibility: PostVisibility = Field("public", description="Who can see the post")
    allowedUsers: List[str] = Field(
        default_factory=list,
        description="Emails that can see the post when visibility is private",
    )
    likesCount: int = Field(0, ge=0, description="Number of likes")
    likedBy: List[str] = Field(default_factory=list, description="Uids of users who liked the post")


class CreatePostRequest(BaseModel):
    """Request model for creating a post."""
    title: str = Field(..., min_length=1, max_length=200, description="Post title")
    content: str = Field("", max_length=20000, description="Post body")
    images: List[str] = Field(default_factory=list, description="Uploaded image URLs")
    location: Optional[GpsLocation] = Field(None, description="Optional GPS location")
    visibility: PostVisibility = Field("public", description="Post visibility")
    allowedUsers: List[str] = Field(
        default_factory=list,
        description="Emails allowed to view a private post",
    )


class UpdatePostRequest(BaseModel):
    """Request model for updating a post. Only provided fields are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, max_length=20000)
    images: Optional[List[str]] = None
    location: Optional[GpsLocation] = None
    visibility: Optional[PostVisibility] = None
    allowedUsers: Optional[List[str]] = None


class CreatePostResponse(BaseModel):
    """Response model for a created post."""
    id: str = Field(..., description="Id of the new post")


class LikeResponse(BaseModel):
    """Response model for toggling a like."""
    liked: bool = Field(..., description="Whether the caller now likes the post")
    count: int = Field(..., ge=0, description="Like count after the toggle")


class PaginatedPosts(BaseModel):
    """A page of the feed."""
    items: List[Post] = Field(default_factory=list)
    nextCursor: Optional[str] = Field(None, description="Pass as `cursor` to get the next page")
    hasMore: bool = Field(False, description="Whether another page exists")
