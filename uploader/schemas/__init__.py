"""Pydantic schemas for API requests and responses."""

from uploader.schemas.upload import UploadStatusResponse
from uploader.schemas.common import ErrorResponse

__all__ = [
    "UploadStatusResponse",
    "ErrorResponse",
]
