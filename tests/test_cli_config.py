"""Tests for CLI configuration module."""

import json
import pytest
from cli.config import Config
from common.constants import DEFAULT_CHUNK_SIZE_BYTES


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.resumable' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()

    assert config.data['timeout'] == 30
    assert config.data['chunk_size'] == DEFAULT_CHUNK_SIZE_BYTES
    assert config.data['max_retries'] == 3
    assert config.data['retry_backoff_multiplier'] == 2

    with open(config_path, 'r') as f:
        assert json.load(f) == config.data


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file merges over defaults."""
    config_path = tmp_path / '.resumable' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        json.dump({'server_host': 'example.com', 'server_port': 9000, 'chunk_size': 4096}, f)

    config = Config(config_path)

    assert config.data['server_host'] == 'example.com'
    assert config.data['server_port'] == 9000
    assert config.get_chunk_size() == 4096

    assert config.data['timeout'] == 30
    assert config.data['max_retries'] == 3


def test_config_handles_corrupted_file(tmp_path):
    """Test recovery from corrupted config file."""
    config_path = tmp_path / '.resumable' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        f.write('{ invalid json content')

    config = Config(config_path)
    assert config.data == Config.DEFAULT_CONFIG

    backup_path = config_path.with_suffix('.json.bak')
    assert backup_path.exists()
    assert backup_path.read_text() == '{ invalid json content'


def test_config_get_base_url(temp_config):
    """Test base URL construction."""
    temp_config.data['server_host'] = 'example.com'
    temp_config.data['server_port'] = 9000
    assert temp_config.get_base_url() == 'http://example.com:9000'


def test_config_get_timeout(temp_config):
    """Test timeout retrieval."""
    assert temp_config.get_timeout() == 30

    temp_config.data['timeout'] = 60
    assert temp_config.get_timeout() == 60


def test_config_set_chunk_size_persists(temp_config):
    """Test that a new chunk size is saved to the file."""
    temp_config.set_chunk_size(2048)

    assert temp_config.get_chunk_size() == 2048
    with open(temp_config.config_path, 'r') as f:
        assert json.load(f)['chunk_size'] == 2048


def test_config_set_chunk_size_rejects_non_positive(temp_config):
    """Test that zero or negative chunk sizes are refused."""
    with pytest.raises(ValueError):
        temp_config.set_chunk_size(0)
    assert temp_config.get_chunk_size() == DEFAULT_CHUNK_SIZE_BYTES


def test_config_get_retry_config(temp_config):
    """Test retry configuration retrieval."""
    retry_config = temp_config.get_retry_config()

    assert retry_config['max_retries'] == 3
    assert retry_config['retry_backoff_multiplier'] == 2

    temp_config.data['max_retries'] = 5
    temp_config.data['retry_backoff_multiplier'] = 3

    retry_config = temp_config.get_retry_config()
    assert retry_config['max_retries'] == 5
    assert retry_config['retry_backoff_multiplier'] == 3


def test_config_directory_created_if_missing(tmp_path):
    """Test that config directory is created if it doesn't exist."""
    config_path = tmp_path / 'nested' / 'deep' / '.resumable' / 'config.json'

    assert not config_path.parent.exists()

    Config(config_path)
    assert config_path.parent.exists()
    assert config_path.exists()
