"""Utility functions for CLI operations."""

import re
import sys

from cli.constants import GREEN, RESET

_IDENTIFIER_UNSAFE = re.compile(r'[^0-9A-Za-z_-]')


def make_identifier(file_size: int, filename: str) -> str:
    """
    Build a default upload identifier from the file size and name.

    Same shape as the resumable.js default: '<size>-<name without unsafe characters>'.

    Args:
        file_size: File size in bytes
        filename: Base name of the file

    Returns:
        Identifier string
    """
    return f"{file_size}-{_IDENTIFIER_UNSAFE.sub('', filename)}"


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def display_progress(filename: str, chunk_number: int, total_chunks: int, sent_bytes: int, total_bytes: int) -> None:
    """Display upload progress on one line of stdout."""
    progress = (chunk_number / total_chunks) * 100 if total_chunks else 100.0
    sys.stdout.write(
        f"\rUploading {filename}: chunk {chunk_number}/{total_chunks} "
        f"{format_file_size(sent_bytes)} / {format_file_size(total_bytes)} ({GREEN}{progress:.1f}%{RESET})"
    )
    if chunk_number >= total_chunks:
        sys.stdout.write('\n')
    sys.stdout.flush()
