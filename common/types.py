"""Shared data type definitions (ChunkDescriptor, UploadedFile)."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Metadata for a single chunk, re-supplied by the client on every request.
    """
    identifier: str
    filename: str
    chunk_number: int
    chunk_size: int
    total_size: int


@dataclass(frozen=True)
class UploadedFile:
    """
    Raw uploaded-file descriptor handed over by the transport layer.
    """
    temp_path: Path
    original_name: str
