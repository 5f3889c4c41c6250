"""Concatenates stored chunks into the final artifact, at most once per destination."""

import errno
import hashlib
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Union

from common.logging_config import get_logger

logger = get_logger(__name__)

COPY_BUFFER_SIZE = 64 * 1024

_DIGITS = re.compile(r'(\d+)')


class CreateStatus(str, Enum):
    """Outcome of an exclusive file creation."""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    PARENT_MISSING = "parent_missing"
    FAILED = "failed"


class AssemblyStatus(str, Enum):
    """Outcome of an assembly attempt."""
    ASSEMBLED = "assembled"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class AssemblyResult:
    """
    Result of Assembler.assemble.
    """
    status: AssemblyStatus
    destination: Path
    bytes_written: int = 0
    checksum: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == AssemblyStatus.ASSEMBLED


def natural_sort_key(value: str) -> list:
    """
    Sort key comparing embedded numbers numerically ('chunk.2' before 'chunk.10').

    Args:
        value: String to build the key for

    Returns:
        List alternating text parts and integers
    """
    return [int(part) if part.isdecimal() else part for part in _DIGITS.split(value)]


def _open_exclusive(path: Path) -> tuple[CreateStatus, Optional[BinaryIO]]:
    try:
        handle = open(path, 'xb')
    except FileExistsError:
        return CreateStatus.ALREADY_EXISTS, None
    except PermissionError:
        return CreateStatus.PERMISSION_DENIED, None
    except FileNotFoundError:
        return CreateStatus.PARENT_MISSING, None
    except OSError as e:
        if e.errno == errno.EEXIST:
            return CreateStatus.ALREADY_EXISTS, None
        logger.error(f"Exclusive create of {path} failed: {e}")
        return CreateStatus.FAILED, None
    return CreateStatus.CREATED, handle


def exclusive_create(path: Union[str, Path]) -> CreateStatus:
    """
    Create an empty file only if nothing exists at path.

    Never overwrites. When several callers race for the same path exactly
    one of them gets CREATED.

    Args:
        path: File to create

    Returns:
        CreateStatus describing the outcome
    """
    status, handle = _open_exclusive(Path(path))
    if handle is not None:
        handle.close()
    return status


class Assembler:
    """
    Builds the final artifact from chunk files.

    The exclusive creation of the destination is the only guard against
    concurrent assembly. A failure halfway through leaves the partial file
    in place, which blocks later attempts for the same destination.
    """

    def assemble(self, chunk_paths: Iterable[Union[str, Path]], destination: Union[str, Path]) -> AssemblyResult:
        """
        Concatenate chunks, in natural order, into destination.

        Args:
            chunk_paths: Chunk files in any order
            destination: Final artifact path; must not exist yet

        Returns:
            AssemblyResult with ASSEMBLED when the destination exists after all
            appends, ALREADY_EXISTS when another caller created it first,
            FAILED otherwise
        """
        destination = Path(destination)
        ordered = sorted((os.fspath(p) for p in chunk_paths), key=natural_sort_key)
        logger.debug(f"Beginning assembly of {destination} from {len(ordered)} chunks")

        status, handle = _open_exclusive(destination)
        if handle is None:
            if status == CreateStatus.ALREADY_EXISTS:
                logger.info(f"{destination} already exists, assembly skipped")
                return AssemblyResult(AssemblyStatus.ALREADY_EXISTS, destination)
            logger.error(f"Cannot create {destination}: {status.value}")
            return AssemblyResult(AssemblyStatus.FAILED, destination)

        hasher = hashlib.sha256()
        written = 0
        try:
            with handle:
                for chunk_path in ordered:
                    with open(chunk_path, 'rb') as chunk:
                        while True:
                            piece = chunk.read(COPY_BUFFER_SIZE)
                            if not piece:
                                break
                            handle.write(piece)
                            hasher.update(piece)
                            written += len(piece)
                    logger.debug(f"Appended {chunk_path}")
        except OSError as e:
            logger.error(f"Assembly of {destination} aborted after {written} bytes: {e}")
            return AssemblyResult(AssemblyStatus.FAILED, destination, written)

        if not destination.exists():
            return AssemblyResult(AssemblyStatus.FAILED, destination, written)

        checksum = hasher.hexdigest()
        logger.info(f"Assembled {destination} ({written} bytes, sha256={checksum})")
        return AssemblyResult(AssemblyStatus.ASSEMBLED, destination, written, checksum)
