"""Tests for ChunkStore."""

import os

import pytest

from filestore import chunk_store as chunk_store_module
from filestore.chunk_store import ChunkStore
from filestore.exceptions import ChunkStoreError


@pytest.fixture
def store(tmp_path):
    return ChunkStore(tmp_path / 'tmp')


def test_constructor_creates_temp_root(tmp_path):
    ChunkStore(tmp_path / 'deep' / 'tmp')

    assert (tmp_path / 'deep' / 'tmp').is_dir()


@pytest.mark.parametrize('chunk_number,expected', [
    (1, 'report.pdf.0001'),
    (7, 'report.pdf.0007'),
    (9999, 'report.pdf.9999'),
    (12345, 'report.pdf.12345'),
])
def test_chunk_filename_is_zero_padded(chunk_number, expected):
    assert ChunkStore.chunk_filename('report.pdf', chunk_number) == expected


def test_chunk_path_layout(store, tmp_path):
    path = store.chunk_path('u1', 'report.pdf', 3)

    assert path == tmp_path / 'tmp' / 'u1' / 'report.pdf.0003'
    assert (tmp_path / 'tmp' / 'u1').is_dir()


def test_store_and_check(store, chunk_source):
    source = chunk_source('part', b'A' * 100)

    assert store.is_chunk_stored('u1', 'report.pdf', 1) is False
    assert store.store_chunk('u1', 'report.pdf', 1, source) is True
    assert store.is_chunk_stored('u1', 'report.pdf', 1) is True
    assert store.chunk_path('u1', 'report.pdf', 1).read_bytes() == b'A' * 100


def test_storing_twice_keeps_first_copy(store, chunk_source):
    store.store_chunk('u1', 'report.pdf', 1, chunk_source('first', b'first'))

    assert store.store_chunk('u1', 'report.pdf', 1, chunk_source('second', b'second')) is True
    assert store.chunk_path('u1', 'report.pdf', 1).read_bytes() == b'first'


def test_missing_source_is_not_stored(store, tmp_path):
    assert store.store_chunk('u1', 'report.pdf', 1, tmp_path / 'missing') is False
    assert store.is_chunk_stored('u1', 'report.pdf', 1) is False


def test_copy_failure_is_not_stored(store, chunk_source, monkeypatch):
    def broken_copy(source, destination):
        raise OSError(28, 'No space left on device')

    source = chunk_source('part', b'data')
    monkeypatch.setattr(chunk_store_module.shutil, 'copyfile', broken_copy)

    assert store.store_chunk('u1', 'report.pdf', 1, source) is False


def test_stored_chunks_and_size(store, chunk_source):
    store.store_chunk('u1', 'report.pdf', 2, chunk_source('b', b'B' * 100))
    store.store_chunk('u1', 'report.pdf', 1, chunk_source('a', b'A' * 100))

    chunks = store.stored_chunks('u1')

    assert [os.path.basename(c) for c in chunks] == ['report.pdf.0001', 'report.pdf.0002']
    assert store.stored_size('u1') == 200


def test_stored_chunks_include_dot_prefixed_names(store, chunk_source):
    store.store_chunk('u1', '.env', 1, chunk_source('a', b'HELLO'))

    chunks = store.stored_chunks('u1')

    assert [os.path.basename(c) for c in chunks] == ['.env.0001']


def test_discard_removes_chunk_directory(store, chunk_source, tmp_path):
    store.store_chunk('u1', 'report.pdf', 1, chunk_source('a', b'A'))

    assert store.discard('u1') is True
    assert not (tmp_path / 'tmp' / 'u1').exists()


def test_chunk_directory_failure_raises(store, monkeypatch):
    def refuse(path, mode=0o777):
        raise PermissionError(13, 'Permission denied', path)

    monkeypatch.setattr(chunk_store_module.os, 'mkdir', refuse)

    with pytest.raises(ChunkStoreError):
        store.chunk_directory('u2')
