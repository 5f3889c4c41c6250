"""Project-wide constants (chunk naming, default paths, default ports)."""

CHUNK_NUMBER_WIDTH: int = 4  # chunk suffix is zero-padded to at least this width

DEFAULT_CHUNK_SIZE_BYTES: int = 1 * 1024 * 1024  # 1 MiB, matches resumable.js default

DEFAULT_DIRECTORY_MODE: int = 0o755

DEFAULT_TEMP_FOLDER = "/app/data/tmp"
DEFAULT_UPLOAD_FOLDER = "/app/data/uploads"

DEFAULT_PARAM_PREFIX = "resumable"

RESUMABLE_SERVER_PORT: int = 8000

HTTP_STATUS_CHUNK_PRESENT: int = 200
HTTP_STATUS_CHUNK_MISSING: int = 204
HTTP_STATUS_STORE_FAILED: int = 500
