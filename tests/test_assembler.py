"""Tests for exclusive creation and chunk assembly."""

import hashlib
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from filestore import assembler as assembler_module
from filestore.assembler import (
    Assembler,
    AssemblyStatus,
    CreateStatus,
    exclusive_create,
    natural_sort_key,
)


def test_natural_sort_key_orders_numbers_numerically():
    names = ['part.10', 'part.2', 'part.1']

    assert sorted(names, key=natural_sort_key) == ['part.1', 'part.2', 'part.10']


def test_natural_sort_key_leaves_non_decimal_digits_as_text():
    names = ['/t/u1/v1²2.bin.0002', '/t/u1/v1²2.bin.0001']

    assert sorted(names, key=natural_sort_key) == ['/t/u1/v1²2.bin.0001', '/t/u1/v1²2.bin.0002']


def test_exclusive_create_succeeds_once(tmp_path):
    target = tmp_path / 'artifact'

    assert exclusive_create(target) == CreateStatus.CREATED
    assert exclusive_create(target) == CreateStatus.ALREADY_EXISTS
    assert target.read_bytes() == b''


def test_exclusive_create_reports_missing_parent(tmp_path):
    assert exclusive_create(tmp_path / 'missing' / 'artifact') == CreateStatus.PARENT_MISSING


def test_exclusive_create_reports_permission_denied(tmp_path, monkeypatch):
    def refuse(path, mode):
        raise PermissionError(13, 'Permission denied', str(path))

    monkeypatch.setattr(assembler_module, 'open', refuse, raising=False)

    assert exclusive_create(tmp_path / 'artifact') == CreateStatus.PERMISSION_DENIED


def test_assemble_uses_natural_order(tmp_path):
    for name, data in (('f.10', b'C'), ('f.1', b'A'), ('f.2', b'B')):
        (tmp_path / name).write_bytes(data)
    chunks = [tmp_path / 'f.10', tmp_path / 'f.2', tmp_path / 'f.1']
    destination = tmp_path / 'out.bin'

    result = Assembler().assemble(chunks, destination)

    assert result.status == AssemblyStatus.ASSEMBLED
    assert result.ok
    assert destination.read_bytes() == b'ABC'
    assert result.bytes_written == 3
    assert result.checksum == hashlib.sha256(b'ABC').hexdigest()


def test_assemble_never_overwrites(tmp_path):
    (tmp_path / 'f.1').write_bytes(b'new')
    destination = tmp_path / 'out.bin'
    destination.write_bytes(b'old')

    result = Assembler().assemble([tmp_path / 'f.1'], destination)

    assert result.status == AssemblyStatus.ALREADY_EXISTS
    assert not result.ok
    assert destination.read_bytes() == b'old'


def test_assemble_fails_without_parent(tmp_path):
    (tmp_path / 'f.1').write_bytes(b'data')

    result = Assembler().assemble([tmp_path / 'f.1'], tmp_path / 'missing' / 'out.bin')

    assert result.status == AssemblyStatus.FAILED


def test_unreadable_chunk_leaves_partial_file(tmp_path):
    (tmp_path / 'f.1').write_bytes(b'A')
    destination = tmp_path / 'out.bin'

    result = Assembler().assemble([tmp_path / 'f.1', tmp_path / 'f.2'], destination)

    assert result.status == AssemblyStatus.FAILED
    assert result.bytes_written == 1
    assert destination.read_bytes() == b'A'


def test_exclusive_create_succeeds_once_across_threads(tmp_path):
    target = tmp_path / 'artifact'
    workers = 8
    barrier = threading.Barrier(workers)

    def create():
        barrier.wait()
        return exclusive_create(target)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        statuses = list(pool.map(lambda _: create(), range(workers)))

    assert statuses.count(CreateStatus.CREATED) == 1
    assert statuses.count(CreateStatus.ALREADY_EXISTS) == workers - 1


def test_concurrent_assembly_builds_the_file_once(tmp_path):
    (tmp_path / 'f.1').write_bytes(b'A' * 1000)
    (tmp_path / 'f.2').write_bytes(b'B' * 1000)
    chunks = [tmp_path / 'f.1', tmp_path / 'f.2']
    destination = tmp_path / 'out.bin'
    barrier = threading.Barrier(2)

    def assemble():
        barrier.wait()
        return Assembler().assemble(chunks, destination)

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = [future.result() for future in [pool.submit(assemble) for _ in range(2)]]

    assert sorted(r.status.value for r in results) == sorted(
        [AssemblyStatus.ASSEMBLED.value, AssemblyStatus.ALREADY_EXISTS.value]
    )
    assert destination.read_bytes() == b'A' * 1000 + b'B' * 1000
