"""Decides whether all chunks of an upload have arrived."""

from typing import Callable


def expected_chunk_count(chunk_size: int, total_size: int) -> int:
    """
    Number of chunks a file of total_size bytes is split into.

    Args:
        chunk_size: Bytes per chunk (must be positive)
        total_size: Bytes of the whole file

    Returns:
        ceil(total_size / chunk_size)
    """
    return total_size // chunk_size + (0 if total_size % chunk_size == 0 else 1)


def is_complete(chunk_size: int, total_size: int, presence_check: Callable[[int], bool]) -> bool:
    """
    Check whether an upload is complete.

    Only chunks 1 .. expected - 1 are probed. The last chunk is assumed to
    be the one whose arrival triggered the check, so completion is reported
    as soon as every chunk before it is present.

    Args:
        chunk_size: Bytes per chunk
        total_size: Bytes of the whole file
        presence_check: Callable telling whether chunk number n is stored

    Returns:
        True if every probed chunk is present, False otherwise or when chunk_size <= 0
    """
    if chunk_size <= 0:
        return False
    expected = expected_chunk_count(chunk_size, total_size)
    return all(presence_check(number) for number in range(1, expected))
