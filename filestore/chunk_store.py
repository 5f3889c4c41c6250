"""Manages temporary chunk files on disk: naming, probing, storing and discarding."""

import os
import shutil
from pathlib import Path
from typing import Optional, Union

from common.constants import CHUNK_NUMBER_WIDTH, DEFAULT_DIRECTORY_MODE
from common.logging_config import get_logger
from filestore.directory_tree import DirectoryTree, EntryType
from filestore.exceptions import ChunkStoreError

logger = get_logger(__name__)


class ChunkStore:
    """
    Chunk files grouped in one directory per upload identifier.

    The presence of a chunk file is the only record that the chunk was
    received; there is no manifest.
    """

    def __init__(
        self,
        temp_root: Union[str, Path],
        tree: Optional[DirectoryTree] = None,
        mode: int = DEFAULT_DIRECTORY_MODE,
    ):
        """
        Initialize the store and make sure the temp root exists.

        Args:
            temp_root: Directory holding one subdirectory per identifier
            tree: DirectoryTree used for enumeration and cleanup
            mode: Mode for the chunk directories
        """
        self.temp_root = Path(temp_root)
        self.mode = mode
        self.tree = tree if tree is not None else DirectoryTree(mode=mode)
        if not self.tree.create(str(self.temp_root), mode):
            logger.error(f"Cannot create temp root {self.temp_root}: {self.tree.errors()}")

    def chunk_directory(self, identifier: str) -> Path:
        """
        Get the chunk directory for an identifier, creating it if absent.

        Only the last level is created; the temp root must exist.

        Args:
            identifier: Upload identifier

        Returns:
            Path of the chunk directory

        Raises:
            ChunkStoreError: If the directory cannot be created
        """
        directory = self.temp_root / identifier
        if not directory.exists():
            try:
                os.mkdir(directory, self.mode)
                logger.debug(f"Created chunk directory {directory}")
            except FileExistsError:
                pass
            except OSError as e:
                raise ChunkStoreError(f"Cannot create chunk directory {directory}: {e.strerror}") from e
        return directory

    @staticmethod
    def chunk_filename(filename: str, chunk_number: int) -> str:
        """
        Get the chunk file name.

        The chunk number is zero-padded to at least four digits; larger
        numbers keep all their digits.

        Args:
            filename: Client file name
            chunk_number: 1-based chunk number

        Returns:
            Name such as 'report.pdf.0007'
        """
        return f"{filename}.{chunk_number:0{CHUNK_NUMBER_WIDTH}d}"

    def chunk_path(self, identifier: str, filename: str, chunk_number: int) -> Path:
        """
        Get the file path for a chunk.

        Args:
            identifier: Upload identifier
            filename: Client file name
            chunk_number: 1-based chunk number

        Returns:
            Path object for the chunk file
        """
        return self.chunk_directory(identifier) / self.chunk_filename(filename, chunk_number)

    def is_chunk_stored(self, identifier: str, filename: str, chunk_number: int) -> bool:
        """
        Check if a chunk file exists on disk.

        Args:
            identifier: Upload identifier
            filename: Client file name
            chunk_number: 1-based chunk number

        Returns:
            True if the chunk file exists, False otherwise
        """
        return self.chunk_path(identifier, filename, chunk_number).exists()

    def store_chunk(
        self,
        identifier: str,
        filename: str,
        chunk_number: int,
        source: Union[str, Path],
    ) -> bool:
        """
        Copy an uploaded temporary file into place as a chunk.

        Storing an already stored chunk is a successful no-op.

        Args:
            identifier: Upload identifier
            filename: Client file name
            chunk_number: 1-based chunk number
            source: Temporary file received from the transport layer

        Returns:
            True if the chunk is stored, False if source is missing or the copy failed
        """
        if self.is_chunk_stored(identifier, filename, chunk_number):
            logger.debug(f"Chunk {chunk_number} of {identifier} already stored")
            return True

        source = Path(source)
        if not source.exists():
            logger.warning(f"Chunk {chunk_number} of {identifier}: source {source} does not exist")
            return False

        destination = self.chunk_path(identifier, filename, chunk_number)
        try:
            shutil.copyfile(source, destination)
        except OSError as e:
            logger.error(f"Failed to store chunk {chunk_number} of {identifier}: {e}")
            return False

        logger.info(f"Stored chunk {chunk_number} of {identifier} ({destination.stat().st_size} bytes)")
        return True

    def stored_chunks(self, identifier: str) -> list[str]:
        """
        List the chunk files stored for an identifier.

        Args:
            identifier: Upload identifier

        Returns:
            Full paths of every file in the chunk directory, dot-prefixed
            names included
        """
        return self.tree.tree(str(self.chunk_directory(identifier)), False, EntryType.FILE)

    def stored_size(self, identifier: str) -> int:
        """
        Total bytes of the chunks stored for an identifier.

        Args:
            identifier: Upload identifier

        Returns:
            Size in bytes
        """
        return self.tree.dir_size(str(self.chunk_directory(identifier)))

    def discard(self, identifier: str) -> bool:
        """
        Delete the chunk directory of an identifier with everything in it.

        Args:
            identifier: Upload identifier

        Returns:
            True if the directory is gone, False on the first removal failure
        """
        directory = self.temp_root / identifier
        if self.tree.delete(str(directory)):
            logger.info(f"Discarded chunk directory {directory}")
            return True
        logger.error(f"Failed to discard chunk directory {directory}: {self.tree.errors()}")
        return False
