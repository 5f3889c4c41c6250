"""Pydantic schemas for the resumable upload endpoints."""

from typing import Optional

from pydantic import BaseModel


class UploadStatusResponse(BaseModel):
    """Response model for an accepted chunk."""
    complete: bool
    filepath: Optional[str] = None
    extension: Optional[str] = None
