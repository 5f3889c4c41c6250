"""Shared pytest fixtures for all tests."""

import pytest
from pathlib import Path

from cli.config import Config
from uploader.config import UploadSettings


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .resumable directory
    """
    config_dir = tmp_path / '.resumable'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def upload_settings(tmp_path):
    """
    Upload settings rooted in the test's temporary directory.

    Returns:
        UploadSettings with temp and upload folders under tmp_path
    """
    return UploadSettings(
        temp_folder=tmp_path / 'data' / 'tmp',
        upload_folder=tmp_path / 'data' / 'uploads',
    )


@pytest.fixture
def chunk_source(tmp_path):
    """
    Factory writing chunk payloads to files, like a transport layer would.

    Returns:
        Callable taking (name, data) and returning the file path
    """
    spool_dir = tmp_path / 'spool'
    spool_dir.mkdir()

    def make(name: str, data: bytes) -> Path:
        path = spool_dir / name
        path.write_bytes(data)
        return path

    return make


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a 250-byte file: 100 x 'A', 100 x 'B', 50 x 'C'.

    Returns:
        Path to the sample file
    """
    file_path = tmp_path / 'report.pdf'
    file_path.write_bytes(b'A' * 100 + b'B' * 100 + b'C' * 50)
    return file_path
