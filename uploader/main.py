"""Entry point for the resumable upload server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from filestore.directory_tree import DirectoryTree
from filestore.exceptions import ChunkStoreError, InvalidPathError, StorageError
from uploader.config import SERVER_HOST, SERVER_PORT, get_settings
from uploader.exceptions import (
    ChunkNotStoredError,
    InvalidUploadParamsError,
    UploadException,
)
from uploader.routes import upload_router

logger = setup_logging('uploader')

app = FastAPI(
    title="Resumable Files Server",
    description="Chunked, resumable file uploads backed by the filesystem",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Create the temp and upload folders on application startup.
    """
    settings = get_settings()
    logger.info("Upload server starting up...")

    tree = DirectoryTree(mode=settings.directory_mode)
    for folder in (settings.temp_folder, settings.upload_folder):
        if tree.create(str(folder), settings.directory_mode):
            logger.info(f"Using folder {folder}")
        else:
            logger.error(f"Cannot create folder {folder}: {tree.errors()}")


def _error_response(request: Request, exc: Exception, status_code: int, code: str) -> JSONResponse:
    """
    Log an exception raised while serving a request and turn it into a JSON error.

    Client errors are logged as warnings, server errors as errors.

    Args:
        request: Request being served
        exc: Exception that ended the request
        status_code: HTTP status to answer with
        code: Machine-readable error code

    Returns:
        JSONResponse shaped like ErrorResponse
    """
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{code}: {exc} [request_id={request_id}] path={request.url.path}"
    if status_code < 500:
        logger.warning(message)
    else:
        logger.error(message)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


@app.exception_handler(InvalidUploadParamsError)
async def invalid_upload_params_handler(request: Request, exc: InvalidUploadParamsError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_UPLOAD_PARAMS")


@app.exception_handler(InvalidPathError)
async def invalid_path_handler(request: Request, exc: InvalidPathError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_PATH")


@app.exception_handler(ChunkNotStoredError)
async def chunk_not_stored_handler(request: Request, exc: ChunkNotStoredError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHUNK_NOT_STORED")


@app.exception_handler(ChunkStoreError)
async def chunk_store_error_handler(request: Request, exc: ChunkStoreError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHUNK_STORE_ERROR")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR")


@app.exception_handler(UploadException)
async def upload_exception_handler(request: Request, exc: UploadException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


app.include_router(upload_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Resumable Files Server API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "uploader"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "uploader.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
    )


if __name__ == "__main__":
    main()
