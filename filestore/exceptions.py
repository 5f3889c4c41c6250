"""Custom exception classes for the storage layer."""


class StorageError(Exception):
    """
    Base exception class for storage-layer errors raised to callers.
    """
    pass


class InvalidPathError(StorageError, ValueError):
    """
    Raised when a relative path is passed where an absolute path is required.
    """
    pass


class ChunkStoreError(StorageError):
    """
    Raised when the chunk directory for an identifier cannot be created.
    """
    pass
