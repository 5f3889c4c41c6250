"""Resumable upload API routes."""

import os
import shutil
import tempfile
from typing import Mapping, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from common.logging_config import get_logger
from common.types import UploadedFile
from uploader.config import UploadSettings, get_settings
from uploader.coordinator import UploadCoordinator, UploadRequest, UploadResponse
from uploader.exceptions import ChunkNotStoredError, InvalidUploadParamsError
from uploader.schemas import ErrorResponse, UploadStatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])

PATH_COMPONENT_PARAMS = ("identifier", "filename")


def validate_params(params: Mapping[str, str], settings: UploadSettings) -> None:
    """
    Reject requests without parameters and names that would escape their folder.

    Identifier and filename end up as path components on disk, so they may
    not contain separators or be '.' / '..'.

    Args:
        params: Request parameters
        settings: Settings holding the parameter names

    Raises:
        InvalidUploadParamsError: If validation fails
    """
    if not params:
        raise InvalidUploadParamsError("No resumable parameters in request")
    for name in PATH_COMPONENT_PARAMS:
        key = settings.request_key(name)
        value = params.get(key)
        if value is None:
            continue
        if value in ('.', '..') or '/' in value or '\\' in value or '\x00' in value:
            raise InvalidUploadParamsError(f"Parameter '{key}' is not a valid file name: '{value}'")


async def _save_upload(upload: UploadFile) -> str:
    """
    Spool an uploaded part to a temporary file.

    Args:
        upload: Multipart file part

    Returns:
        Path of the temporary file; the caller removes it
    """
    await upload.seek(0)
    with tempfile.NamedTemporaryFile(prefix="chunk-", delete=False) as spool:
        await run_in_threadpool(shutil.copyfileobj, upload.file, spool)
        return spool.name


@router.get("", responses={400: {"model": ErrorResponse}})
async def probe_chunk(request: Request, settings: UploadSettings = Depends(get_settings)):
    """
    Test whether a chunk has already been received.

    Parameters (query):
        - resumableIdentifier, resumableFilename, resumableChunkNumber

    Returns:
        - 200: Chunk already stored
        - 204: Chunk missing, the client should send it

    Raises:
        - 400: Missing or invalid parameters
    """
    params = dict(request.query_params)
    validate_params(params, settings)

    upload_response = UploadResponse()
    coordinator = UploadCoordinator(settings, UploadRequest(is_read=True, params=params), upload_response)
    await run_in_threadpool(coordinator.process)

    return Response(status_code=upload_response.status_code or status.HTTP_200_OK)


@router.post(
    "",
    response_model=UploadStatusResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_chunk(
    request: Request,
    response: Response,
    settings: UploadSettings = Depends(get_settings),
):
    """
    Receive one chunk of a resumable upload.

    Parameters (multipart/form-data):
        - file: Chunk bytes
        - resumableIdentifier, resumableFilename, resumableChunkNumber,
          resumableChunkSize, resumableTotalSize

    Returns:
        - complete: Whether this chunk completed the upload
        - filepath: Final file path once assembled
        - extension: Final file extension once assembled

    Raises:
        - 400: Missing or invalid parameters
        - 500: Chunk could not be stored
    """
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}
    upload: Optional[UploadFile] = next(
        (value for value in form.values() if isinstance(value, UploadFile)),
        None,
    )

    spool_path = None
    try:
        validate_params(params, settings)
        uploaded_file = None
        if upload is not None:
            spool_path = await _save_upload(upload)
            uploaded_file = UploadedFile(temp_path=spool_path, original_name=upload.filename or "")

        upload_response = UploadResponse()
        coordinator = UploadCoordinator(
            settings,
            UploadRequest(is_read=False, params=params, file=uploaded_file),
            upload_response,
        )
        await run_in_threadpool(coordinator.process)
    finally:
        if spool_path is not None:
            os.unlink(spool_path)
        await form.close()

    if upload_response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        raise ChunkNotStoredError("Chunk could not be stored, resend it")
    if upload_response.status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    response.status_code = upload_response.status_code or status.HTTP_200_OK
    if coordinator.is_upload_complete:
        logger.info(f"Upload complete: {coordinator.filepath}")

    return UploadStatusResponse(
        complete=coordinator.is_upload_complete,
        filepath=coordinator.filepath if coordinator.is_upload_complete else None,
        extension=coordinator.extension if coordinator.is_upload_complete else None,
    )
