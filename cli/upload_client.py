"""HTTP client that uploads local files to the resumable upload server."""

import os
import time
import uuid
from pathlib import Path
from typing import Iterator, Optional

import httpx

from common.constants import DEFAULT_PARAM_PREFIX, HTTP_STATUS_CHUNK_MISSING
from common.logging_config import get_logger
from cli.config import Config
from cli.constants import UPLOAD_ENDPOINT
from cli.utils import display_progress, format_file_size, make_identifier
from filestore.completion import expected_chunk_count

logger = get_logger(__name__)


class UploadError(Exception):
    """
    Raised when the server rejects a chunk or the upload cannot finish.
    """
    pass


def param_key(name: str, prefix: str = DEFAULT_PARAM_PREFIX) -> str:
    """
    Request key for a resumable parameter (e.g. 'chunkNumber' -> 'resumableChunkNumber').
    """
    if not prefix:
        return name
    return prefix + name[:1].upper() + name[1:]


def chunk_order(total_chunks: int) -> list[int]:
    """
    Order in which chunks are sent.

    The server reports completion once every chunk before the last one is
    stored, so the last chunk goes first and the upload completes on the
    arrival of the chunk preceding it, with all chunks on disk.

    Args:
        total_chunks: Number of chunks of the file

    Returns:
        Chunk numbers, 1-based
    """
    if total_chunks <= 1:
        return [1]
    return [total_chunks] + list(range(1, total_chunks))


class ResumableUploadClient:
    """HTTP client for the upload API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize upload client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized ResumableUploadClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        self.session.close()

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET or POST)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )
                break

            logger.debug(
                f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
            )

            if response.status_code >= 500 and attempt < max_retries:
                delay = backoff ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                )
                time.sleep(delay)
                continue

            if 400 <= response.status_code < 500:
                logger.warning(
                    f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )
            return response

        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to upload server. Is it running?")
        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map an error response to a user-friendly message.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'INVALID_UPLOAD_PARAMS': f'Server rejected the upload parameters: {detail}',
            'CHUNK_NOT_STORED': 'Server could not store a chunk. Please try again later.',
            'STORAGE_ERROR': 'Server storage is unavailable. Please try again later.',
        }

        return error_messages.get(code, f"Error ({response.status_code}): {detail}")

    def _chunk_params(
        self,
        identifier: str,
        filename: str,
        chunk_number: int,
        chunk_size: int,
        total_size: int,
    ) -> dict:
        return {
            param_key('identifier'): identifier,
            param_key('filename'): filename,
            param_key('chunkNumber'): str(chunk_number),
            param_key('chunkSize'): str(chunk_size),
            param_key('totalSize'): str(total_size),
        }

    @staticmethod
    def _read_chunk(path: Path, chunk_number: int, chunk_size: int) -> bytes:
        with open(path, 'rb') as f:
            f.seek((chunk_number - 1) * chunk_size)
            return f.read(chunk_size)

    def chunk_missing(self, identifier: str, filename: str, chunk_number: int) -> bool:
        """
        Ask the server whether a chunk still has to be sent.

        Args:
            identifier: Upload identifier
            filename: Name the file is uploaded under
            chunk_number: 1-based chunk number

        Returns:
            True when the server answered 204

        Raises:
            UploadError: If the server rejects the probe
            ConnectionError: If the server cannot be reached
        """
        params = {
            param_key('identifier'): identifier,
            param_key('filename'): filename,
            param_key('chunkNumber'): str(chunk_number),
        }
        response = self._request_with_retry('GET', UPLOAD_ENDPOINT, params=params)
        if response.status_code >= 400:
            raise UploadError(self._format_error(response))
        return response.status_code == HTTP_STATUS_CHUNK_MISSING

    def send_chunk(
        self,
        identifier: str,
        filename: str,
        chunk_number: int,
        chunk_size: int,
        total_size: int,
        data: bytes,
    ) -> dict:
        """
        Post one chunk.

        Returns:
            Parsed UploadStatusResponse, or {'complete': False} for an empty reply

        Raises:
            UploadError: If the server rejects the chunk
            ConnectionError: If the server cannot be reached
        """
        response = self._request_with_retry(
            'POST',
            UPLOAD_ENDPOINT,
            data=self._chunk_params(identifier, filename, chunk_number, chunk_size, total_size),
            files={'file': (filename, data, 'application/octet-stream')},
        )
        if response.status_code >= 400:
            raise UploadError(self._format_error(response))
        if not response.content:
            return {'complete': False}
        return response.json()

    def iter_upload(
        self,
        file_path: str,
        identifier: Optional[str] = None,
        name: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ) -> Iterator[tuple[int, int, bool, dict]]:
        """
        Upload a file chunk by chunk, yielding after every chunk.

        Args:
            file_path: Local file to upload
            identifier: Upload identifier (defaults to '<size>-<name>')
            name: Name to upload the file under (defaults to its base name)
            chunk_size: Bytes per chunk (defaults to the configured size)

        Yields:
            (chunk_number, total_chunks, sent, result) where sent is False
            for chunks the server already had

        Raises:
            FileNotFoundError: If file_path is not a file
            UploadError: If the server rejects a chunk
            ConnectionError: If the server cannot be reached
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        chunk_size = chunk_size or self.config.get_chunk_size()
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")

        total_size = os.path.getsize(path)
        filename = name or path.name
        identifier = identifier or make_identifier(total_size, filename)
        total_chunks = max(expected_chunk_count(chunk_size, total_size), 1)

        logger.info(
            f"Uploading {path} as {filename} [identifier={identifier}, "
            f"size={format_file_size(total_size)}, chunks={total_chunks}]"
        )

        for chunk_number in chunk_order(total_chunks):
            if not self.chunk_missing(identifier, filename, chunk_number):
                logger.debug(f"Chunk {chunk_number} already on server, skipping")
                yield chunk_number, total_chunks, False, {'complete': False}
                continue

            data = self._read_chunk(path, chunk_number, chunk_size)
            result = self.send_chunk(identifier, filename, chunk_number, chunk_size, total_size, data)
            logger.debug(f"Sent chunk {chunk_number}/{total_chunks} ({len(data)} bytes)")
            yield chunk_number, total_chunks, True, result

    def upload_file(
        self,
        file_path: str,
        identifier: Optional[str] = None,
        name: Optional[str] = None,
        chunk_size: Optional[int] = None,
        show_progress: bool = False,
    ) -> dict:
        """
        Upload a file, sending only the chunks the server is missing.

        Args:
            file_path: Local file to upload
            identifier: Upload identifier (defaults to '<size>-<name>')
            name: Name to upload the file under (defaults to its base name)
            chunk_size: Bytes per chunk (defaults to the configured size)
            show_progress: Print a progress line to stdout

        Returns:
            Summary with 'complete', 'filepath', 'chunks_sent' and 'chunks_skipped'

        Raises:
            FileNotFoundError: If file_path is not a file
            UploadError: If the server rejects a chunk
            ConnectionError: If the server cannot be reached
        """
        total_size = os.path.getsize(file_path) if os.path.isfile(file_path) else 0
        chunk_size = chunk_size or self.config.get_chunk_size()
        summary = {'complete': False, 'filepath': None, 'chunks_sent': 0, 'chunks_skipped': 0}

        position = 0
        for chunk_number, total_chunks, sent, result in self.iter_upload(file_path, identifier, name, chunk_size):
            position += 1
            summary['chunks_sent' if sent else 'chunks_skipped'] += 1
            if result.get('complete'):
                summary['complete'] = True
                summary['filepath'] = result.get('filepath')
            if show_progress:
                display_progress(
                    name or Path(file_path).name,
                    position,
                    total_chunks,
                    min(position * chunk_size, total_size),
                    total_size,
                )

        if summary['complete']:
            logger.info(f"Upload finished: {summary['filepath']}")
        else:
            logger.info(
                f"Upload of {file_path} sent {summary['chunks_sent']} chunks, "
                f"server did not report completion"
            )
        return summary
