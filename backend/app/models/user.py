from typing import Optional, Literal
from pydantic import BaseModel, Field, EmailStr
from datetime import datetime


UserRole = Literal["admin", "allowed", "public"]


class AppUser(BaseModel):
    """Model representing a user record stored in the `users` collection.

    Created at first login and keyed by the Firebase uid. The stored role is
    never trusted for `admin`: it is re-derived from the admin email list on
    every access check.

    Attributes:
        uid: Unique identifier assigned by Firebase Authentication
        email: User's email address
        displayName: Display name from the identity provider (optional)
        photoURL: Avatar URL from the identity provider (optional)
        role: Permission tier (admin, allowed or public)
        canEdit: Whether an allowed user may create and edit posts
        createdAt: When the record was created (first login)
        approvedAt: When an admin approved the user (optional)
        approvedBy: Email of the approving admin (optional)
    """

    uid: str = Field(
        ...,
        description="Unique identifier for the user",
        min_length=1,
    )
    email: str = Field(
        "",
        description="User's email address",
    )
    displayName: Optional[str] = Field(
        None,
        description="User's display name",
    )
    photoURL: Optional[str] = Field(None, description="User's avatar URL")
    role: UserRole = Field("public", description="Permission tier")
    canEdit: bool = Field(False, description="Whether the user can create and edit posts")
    createdAt: Optional[datetime] = Field(None, description="When the user first logged in")
    approvedAt: Optional[datetime] = Field(None, description="When the user was approved")
    approvedBy: Optional[str] = Field(None, description="Email of the approving admin")

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "example": {
                "uid": "user123abc",
                "email": "user@example.com",
                "displayName": "John Doe",
                "photoURL": None,
                "role": "allowed",
                "canEdit": True,
                "createdAt": "2026-01-16T03:00:00Z",
            }
        }


class WhitelistEntry(BaseModel):
    """Pre-approval record for an email that has not logged in yet."""
    email: str = Field(..., description="Lower-cased email address")
    role: UserRole = Field("allowed", description="Role granted at first login")
    canEdit: bool = Field(False, description="Write permission granted at first login")
    createdAt: Optional[datetime] = Field(None, description="When the entry was added")
    addedBy: Optional[str] = Field(None, description="Email of the admin who added the entry")


class AddWhitelistRequest(BaseModel):
    """Request model for pre-approving an email."""
    email: EmailStr = Field(..., description="Email address to pre-approve")
    # admin only comes from ADMIN_EMAILS
    role: Literal["allowed", "public"] = Field("allowed", description="Role granted at first login")
    canEdit: bool = Field(False, description="Whether the user may write posts")


class ApproveUserRequest(BaseModel):
    """Request model for approving a user."""
    canEdit: bool = Field(False, description="Grant write permission along with approval")


class EditPermissionRequest(BaseModel):
    """Request model for changing a user's write permission.

    When canEdit is omitted the current value is flipped.
    """
    canEdit: Optional[bool] = Field(None, description="New write permission, or null to flip")


class EditPermissionResponse(BaseModel):
    """Response model with the user's resulting write permission."""
    canEdit: bool = Field(..., description="Write permission after the change")
