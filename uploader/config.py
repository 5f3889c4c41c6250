"""Configuration settings for the upload server."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from common.constants import (
    DEFAULT_DIRECTORY_MODE,
    DEFAULT_PARAM_PREFIX,
    DEFAULT_TEMP_FOLDER,
    DEFAULT_UPLOAD_FOLDER,
    RESUMABLE_SERVER_PORT,
)


TEMP_FOLDER = os.environ.get("RESUMABLE_TEMP_FOLDER", DEFAULT_TEMP_FOLDER)

UPLOAD_FOLDER = os.environ.get("RESUMABLE_UPLOAD_FOLDER", DEFAULT_UPLOAD_FOLDER)

DELETE_TEMP_FOLDER = os.environ.get("RESUMABLE_DELETE_TEMP_FOLDER", "true").lower() in ("1", "true", "yes")

DIRECTORY_MODE = int(os.environ.get("RESUMABLE_DIRECTORY_MODE", f"{DEFAULT_DIRECTORY_MODE:o}"), 8)

PARAM_PREFIX = os.environ.get("RESUMABLE_PARAM_PREFIX", DEFAULT_PARAM_PREFIX)

SERVER_HOST = os.environ.get("RESUMABLE_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("RESUMABLE_PORT", str(RESUMABLE_SERVER_PORT)))

DEFAULT_PARAM_NAMES: Mapping[str, str] = {
    "identifier": "identifier",
    "filename": "filename",
    "chunkNumber": "chunkNumber",
    "chunkSize": "chunkSize",
    "totalSize": "totalSize",
}


@dataclass(frozen=True)
class UploadSettings:
    """
    Settings handed to the upload coordinator at construction.

    param_names maps each logical parameter to the short name expected on
    the wire; the request key is the prefix followed by the short name with
    its first letter upper-cased (e.g. 'resumableChunkNumber').
    """
    temp_folder: Path
    upload_folder: Path
    delete_temp_folder: bool = True
    directory_mode: int = DEFAULT_DIRECTORY_MODE
    param_prefix: str = DEFAULT_PARAM_PREFIX
    param_names: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PARAM_NAMES))

    @classmethod
    def from_env(cls) -> "UploadSettings":
        """
        Build settings from the module-level environment values.

        Returns:
            UploadSettings instance
        """
        return cls(
            temp_folder=Path(TEMP_FOLDER),
            upload_folder=Path(UPLOAD_FOLDER),
            delete_temp_folder=DELETE_TEMP_FOLDER,
            directory_mode=DIRECTORY_MODE,
            param_prefix=PARAM_PREFIX,
        )

    def request_key(self, name: str) -> str:
        """
        Request parameter key for a logical parameter.

        Args:
            name: One of identifier, filename, chunkNumber, chunkSize, totalSize

        Returns:
            Key as sent by the client
        """
        short_name = self.param_names.get(name, name)
        if not self.param_prefix:
            return short_name
        return self.param_prefix + short_name[:1].upper() + short_name[1:]


def get_settings() -> UploadSettings:
    """
    FastAPI dependency providing the upload settings.

    Returns:
        UploadSettings built from the environment
    """
    return UploadSettings.from_env()
