"""Pydantic schemas for the bundling endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class BundleResponse(BaseModel):
    """Inline bundle returned by GET /bundler."""

    data: str = Field(..., description="Bundled server code")


class UploadDescriptor(BaseModel):
    """Where a published archive lives in the remote bucket."""

    bucket: str
    path: str = Field(..., description="Key prefix, '<mcpId>/<revision>/'")
    files: list[str]


class BundleV2Response(BaseModel):
    """Response for GET /v2/bundler.

    Exactly one of `upload` (remote publishing enabled) or `data`
    (remote publishing disabled) is set.
    """

    success: bool = True
    revision: str = Field(..., description="Commit the bundle was built from")
    upload: Optional[UploadDescriptor] = None
    data: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
