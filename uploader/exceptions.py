"""Custom exception classes for the upload service."""


class UploadException(Exception):
    """
    Base exception class for all upload-service errors.
    """
    pass


class InvalidUploadParamsError(UploadException):
    """
    Raised when a request lacks a resumable parameter or carries a malformed one.
    """
    pass


class ChunkNotStoredError(UploadException):
    """
    Raised when a received chunk could not be written to the temp folder.
    """
    pass
