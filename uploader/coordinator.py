"""Request-level orchestration of the resumable upload protocol.

Each request is handled by a fresh UploadCoordinator. Nothing is kept in
memory between requests; the chunk files on disk are the only state.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from common.constants import (
    HTTP_STATUS_CHUNK_MISSING,
    HTTP_STATUS_CHUNK_PRESENT,
    HTTP_STATUS_STORE_FAILED,
)
from common.logging_config import get_logger
from common.types import ChunkDescriptor, UploadedFile
from filestore.assembler import Assembler, AssemblyStatus
from filestore.chunk_store import ChunkStore
from filestore.completion import expected_chunk_count, is_complete
from filestore.directory_tree import DirectoryTree
from uploader.config import UploadSettings
from uploader.exceptions import InvalidUploadParamsError

logger = get_logger(__name__)


@dataclass
class UploadRequest:
    """
    Transport-agnostic view of an incoming request.

    params holds the query parameters of a read request or the body
    parameters of a write request.
    """
    is_read: bool
    params: Mapping[str, str] = field(default_factory=dict)
    file: Optional[UploadedFile] = None


@dataclass
class UploadResponse:
    """
    Response whose status code the coordinator sets.
    """
    status_code: Optional[int] = None


class UploadCoordinator:
    """
    Handles one probe or ingest request of a resumable upload.

    A request without a file payload probes for a single chunk and answers
    204 (send it) or 200 (already have it). A request with a payload stores
    the chunk and, once every chunk before the last one is present,
    assembles the final file into the upload folder.
    """

    WITHOUT_EXTENSION = True

    def __init__(
        self,
        settings: UploadSettings,
        request: UploadRequest,
        response: UploadResponse,
        chunk_store: Optional[ChunkStore] = None,
        assembler: Optional[Assembler] = None,
        tree: Optional[DirectoryTree] = None,
    ):
        """
        Initialize the coordinator for one request.

        Args:
            settings: Folder locations, cleanup flag and parameter names
            request: Incoming request
            response: Response to set the status code on
            chunk_store: ChunkStore override (defaults to one on settings.temp_folder)
            assembler: Assembler override
            tree: DirectoryTree used to create the upload folder
        """
        self.settings = settings
        self.request = request
        self.response = response
        self.tree = tree if tree is not None else DirectoryTree(mode=settings.directory_mode)
        self.chunk_store = chunk_store or ChunkStore(settings.temp_folder, self.tree, settings.directory_mode)
        self.assembler = assembler or Assembler()

        self._filename: Optional[str] = None
        self._filepath: Optional[str] = None
        self._extension: Optional[str] = None
        self._original_filename: Optional[str] = None
        self._is_upload_complete = False

        if self.params and self.request.file is not None:
            self._original_filename = self._param("filename")
            if self._original_filename is not None:
                self._extension = self.find_extension(self._original_filename)

    @staticmethod
    def find_extension(filename: str) -> str:
        """
        Extension of a file name, without the dot.

        Args:
            filename: File name or path

        Returns:
            Text after the last dot of the basename, or '' if there is none
        """
        basename = os.path.basename(filename)
        if '.' not in basename:
            return ''
        return basename.rsplit('.', 1)[1]

    @classmethod
    def remove_extension(cls, filename: str) -> str:
        """
        File name with its extension stripped.

        Args:
            filename: File name or path

        Returns:
            filename without its trailing '.<extension>'
        """
        extension = cls.find_extension(filename)
        if not extension:
            return filename
        return filename[:-(len(extension) + 1)]

    @classmethod
    def create_safe_filename(cls, filename: str, original_filename: str) -> str:
        """
        Force the extension of the original file onto a user-defined name.

        Args:
            filename: User-defined name, with or without an extension
            original_filename: Name of the uploaded file

        Returns:
            filename carrying the original extension
        """
        stem = cls.remove_extension(filename)
        extension = cls.find_extension(original_filename)
        if not extension:
            return stem
        return f"{stem}.{extension}"

    @property
    def params(self) -> Mapping[str, str]:
        return self.request.params or {}

    @property
    def is_upload_complete(self) -> bool:
        return self._is_upload_complete

    @property
    def filename(self) -> Optional[str]:
        """Server-side override for the final file name."""
        return self._filename

    @filename.setter
    def filename(self, value: Optional[str]) -> None:
        self._filename = value

    @property
    def filepath(self) -> Optional[str]:
        return self._filepath

    @property
    def extension(self) -> Optional[str]:
        return self._extension

    def original_filename(self, without_extension: bool = False) -> Optional[str]:
        """
        Name of the uploaded file as sent by the client.

        Args:
            without_extension: Strip the extension

        Returns:
            Original file name, or None outside an ingest request
        """
        if self._original_filename is None:
            return None
        if without_extension == self.WITHOUT_EXTENSION:
            return self.remove_extension(self._original_filename)
        return self._original_filename

    def process(self) -> None:
        """
        Handle the request: ingest when a file is attached, probe otherwise.

        Raises:
            InvalidUploadParamsError: If a required parameter is missing or malformed
        """
        if not self.params:
            logger.debug("Request carries no resumable parameters, nothing to do")
            return
        if self.request.file is not None:
            self.handle_chunk()
        else:
            self.handle_test_chunk()

    def handle_test_chunk(self) -> None:
        """Probe for one chunk and set 204 when it is missing, 200 when present."""
        descriptor = self._read_descriptor(with_sizes=False)
        if self.chunk_store.is_chunk_stored(descriptor.identifier, descriptor.filename, descriptor.chunk_number):
            self.response.status_code = HTTP_STATUS_CHUNK_PRESENT
        else:
            self.response.status_code = HTTP_STATUS_CHUNK_MISSING
        logger.debug(
            f"Probe {descriptor.identifier} chunk {descriptor.chunk_number}: {self.response.status_code}"
        )

    def handle_chunk(self) -> None:
        """Store the attached chunk and assemble the file when the upload is complete."""
        descriptor = self._read_descriptor(with_sizes=True)
        stored = self.chunk_store.store_chunk(
            descriptor.identifier,
            descriptor.filename,
            descriptor.chunk_number,
            self.request.file.temp_path,
        )
        if not stored:
            logger.warning(f"Chunk {descriptor.chunk_number} of {descriptor.identifier} was not stored")
            self.response.status_code = HTTP_STATUS_STORE_FAILED
            return

        def presence_check(chunk_number: int) -> bool:
            return self.chunk_store.is_chunk_stored(descriptor.identifier, descriptor.filename, chunk_number)

        if is_complete(descriptor.chunk_size, descriptor.total_size, presence_check):
            self._create_file_and_delete_tmp(descriptor)
        self.response.status_code = HTTP_STATUS_CHUNK_PRESENT

    def _create_file_and_delete_tmp(self, descriptor: ChunkDescriptor) -> None:
        chunk_files = self.chunk_store.stored_chunks(descriptor.identifier)
        if self._filename is not None:
            final_filename = self.create_safe_filename(self._filename, descriptor.filename)
        else:
            final_filename = descriptor.filename

        destination = Path(self.settings.upload_folder) / final_filename
        self._filepath = str(destination)
        self._extension = self.find_extension(self._filepath)

        logger.info(
            f"Upload {descriptor.identifier} complete "
            f"({len(chunk_files)}/{expected_chunk_count(descriptor.chunk_size, descriptor.total_size)} chunks, "
            f"{self.chunk_store.stored_size(descriptor.identifier)} bytes), assembling {destination}"
        )
        if not self.tree.create(str(destination.parent), self.settings.directory_mode):
            logger.error(f"Cannot create upload folder {destination.parent}: {self.tree.errors()}")
            return

        result = self.assembler.assemble(chunk_files, destination)
        if result.status == AssemblyStatus.ASSEMBLED:
            self._is_upload_complete = True
            if self.settings.delete_temp_folder:
                self.chunk_store.discard(descriptor.identifier)
        elif result.status == AssemblyStatus.ALREADY_EXISTS:
            if self._is_complete_artifact(destination, descriptor.total_size):
                logger.info(f"{destination} was assembled by a concurrent request")
                self._is_upload_complete = True
            else:
                logger.warning(f"{destination} exists but is not complete; another request may be assembling it")
        else:
            # Chunks stay in place so a later request can retry the assembly.
            logger.error(f"Assembly of {destination} failed for upload {descriptor.identifier}")

    @staticmethod
    def _is_complete_artifact(destination: Path, total_size: int) -> bool:
        try:
            return destination.stat().st_size == total_size
        except OSError:
            return False

    def _param(self, name: str) -> Optional[str]:
        return self.params.get(self.settings.request_key(name))

    def _required_param(self, name: str) -> str:
        value = self._param(name)
        if value is None or str(value) == '':
            raise InvalidUploadParamsError(f"Missing parameter '{self.settings.request_key(name)}'")
        return str(value)

    def _int_param(self, name: str, minimum: int) -> int:
        raw = self._required_param(name)
        try:
            value = int(raw)
        except ValueError:
            raise InvalidUploadParamsError(
                f"Parameter '{self.settings.request_key(name)}' must be an integer, got '{raw}'"
            )
        if value < minimum:
            raise InvalidUploadParamsError(
                f"Parameter '{self.settings.request_key(name)}' must be at least {minimum}, got {value}"
            )
        return value

    def _read_descriptor(self, with_sizes: bool) -> ChunkDescriptor:
        # Sizes are checked here, so a negative chunk size is a 400 rather
        # than an upload that never completes.
        return ChunkDescriptor(
            identifier=self._required_param("identifier"),
            filename=self._required_param("filename"),
            chunk_number=self._int_param("chunkNumber", 1),
            chunk_size=self._int_param("chunkSize", 0) if with_sizes else 0,
            total_size=self._int_param("totalSize", 0) if with_sizes else 0,
        )
