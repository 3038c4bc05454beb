from pydantic import BaseModel, Field


class SignedUploadRequest(BaseModel):
    """Request for a pre-signed image upload URL."""
    fileName: str = Field(..., min_length=1, max_length=255, description="Original file name, used for the extension")
    contentType: str = Field(..., description="MIME type of the file to upload")
    fileSize: int = Field(..., ge=0, description="File size in bytes")

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "example": {
                "fileName": "sunset.jpg",
                "contentType": "image/jpeg",
                "fileSize": 482113,
            }
        }


class SignedUploadResponse(BaseModel):
    """Where to PUT the file and where it will be served from."""
    uploadUrl: str = Field(..., description="Pre-signed PUT URL, valid for five minutes")
    publicUrl: str = Field(..., description="Public URL of the object after upload")
    key: str = Field(..., description="Object key in the bucket")
