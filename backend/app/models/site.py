from typing import Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime


SiteMode = Literal["open", "restricted"]


class SiteConfig(BaseModel):
    """Site-wide access mode stored at `config/site`.

    In `open` mode anyone may read public posts. In `restricted` mode only
    admins and approved users may read anything.
    """
    mode: SiteMode = Field("open", description="Access mode")
    updatedAt: Optional[datetime] = Field(None, description="When the mode last changed")
    updatedBy: Optional[str] = Field(None, description="Email of the admin who changed it")


class UpdateSiteModeRequest(BaseModel):
    """Request model for changing the access mode."""
    mode: SiteMode = Field(..., description="New access mode")
