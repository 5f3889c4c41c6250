"""Configuration management for the resumable upload CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.constants import DEFAULT_CHUNK_SIZE_BYTES, RESUMABLE_SERVER_PORT
from cli.constants import CONFIG_DIR_NAME, CONFIG_FILE_NAME


class Config:
    """
    Client settings kept in a JSON file.

    Keys missing from the file fall back to DEFAULT_CONFIG, so an old file
    keeps working when new settings are added.
    """

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("RESUMABLE_SERVER_HOST", "localhost"),
        "server_port": int(os.environ.get("RESUMABLE_SERVER_PORT", str(RESUMABLE_SERVER_PORT))),
        "timeout": 30,
        "chunk_size": DEFAULT_CHUNK_SIZE_BYTES,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        """
        Args:
            config_path: JSON file, usually Config.default_path()
        """
        self.config_path = Path(config_path)
        self._ensure_directory()
        self.data = self._load()

    @classmethod
    def default_path(cls) -> Path:
        """~/.resumable/config.json"""
        return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def _ensure_directory(self) -> None:
        # Home may be read-only in containers; fall back to the temp dir.
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict:
        """
        Read the file over the defaults.

        A file that is not valid JSON is kept as '<name>.json.bak' and the
        defaults are used; a missing file is written with the defaults.

        Returns:
            Configuration dictionary
        """
        settings = dict(self.DEFAULT_CONFIG)
        if not self.config_path.exists():
            self._write(settings)
            return settings

        try:
            settings.update(json.loads(self.config_path.read_text()))
        except (json.JSONDecodeError, OSError):
            self._backup()
            return dict(self.DEFAULT_CONFIG)
        return settings

    def _backup(self) -> None:
        try:
            shutil.copy(self.config_path, self.config_path.with_suffix('.json.bak'))
        except OSError:
            pass

    def _write(self, settings: dict) -> None:
        try:
            self.config_path.write_text(json.dumps(settings, indent=2))
        except OSError:
            pass

    def save(self) -> None:
        """Write the current settings back to the file."""
        self._write(self.data)

    def get_base_url(self) -> str:
        """
        Returns:
            Server URL such as "http://localhost:8000"
        """
        return f"http://{self.data['server_host']}:{self.data['server_port']}"

    def get_timeout(self) -> int:
        return self.data.get('timeout', 30)

    def get_chunk_size(self) -> int:
        return int(self.data.get('chunk_size', DEFAULT_CHUNK_SIZE_BYTES))

    def set_chunk_size(self, chunk_size: int) -> None:
        """
        Change the default chunk size and persist it.

        Raises:
            ValueError: If chunk_size is not positive
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.data['chunk_size'] = chunk_size
        self.save()

    def get_retry_config(self) -> dict:
        """
        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
