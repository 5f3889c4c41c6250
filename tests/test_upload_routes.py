"""Tests for the upload HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from filestore.assembler import Assembler, AssemblyResult, AssemblyStatus
from filestore.chunk_store import ChunkStore
from uploader.config import get_settings
from uploader.main import app


@pytest.fixture
def client(upload_settings):
    """TestClient with settings rooted in tmp_path (startup hook not run)."""
    app.dependency_overrides[get_settings] = lambda: upload_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _form(chunk_number, identifier='u1', filename='report.pdf', chunk_size=100, total_size=250):
    return {
        'resumableIdentifier': identifier,
        'resumableFilename': filename,
        'resumableChunkNumber': str(chunk_number),
        'resumableChunkSize': str(chunk_size),
        'resumableTotalSize': str(total_size),
    }


def _query(chunk_number, identifier='u1', filename='report.pdf'):
    return {
        'resumableIdentifier': identifier,
        'resumableFilename': filename,
        'resumableChunkNumber': str(chunk_number),
    }


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'healthy', 'service': 'uploader'}
    assert 'X-Request-ID' in response.headers


def test_missing_chunk_check_returns_204(client):
    response = client.get('/upload', params=_query(1))

    assert response.status_code == 204
    assert response.content == b''


def test_upload_flow(client, upload_settings):
    response = client.post('/upload', data=_form(1), files={'file': ('blob', b'A' * 100)})
    assert response.status_code == 200
    assert response.json() == {'complete': False, 'filepath': None, 'extension': None}

    assert client.get('/upload', params=_query(1)).status_code == 200

    response = client.post('/upload', data=_form(2), files={'file': ('blob', b'B' * 100)})
    assert response.status_code == 200
    body = response.json()
    assert body['complete'] is True
    assert body['filepath'] == str(upload_settings.upload_folder / 'report.pdf')
    assert body['extension'] == 'pdf'
    assert (upload_settings.upload_folder / 'report.pdf').read_bytes() == b'A' * 100 + b'B' * 100


def test_chunk_check_without_params_is_rejected(client):
    response = client.get('/upload')

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_UPLOAD_PARAMS'


def test_non_numeric_chunk_number_is_rejected(client):
    query = _query(1)
    query['resumableChunkNumber'] = 'first'

    response = client.get('/upload', params=query)

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_UPLOAD_PARAMS'


@pytest.mark.parametrize('field,value', [
    ('resumableIdentifier', '../escape'),
    ('resumableIdentifier', '..'),
    ('resumableFilename', 'nested/report.pdf'),
    ('resumableFilename', '.'),
])
def test_path_components_are_validated(client, upload_settings, field, value):
    form = _form(1)
    form[field] = value

    response = client.post('/upload', data=form, files={'file': ('blob', b'A' * 100)})

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_UPLOAD_PARAMS'
    assert not upload_settings.temp_folder.exists() or not any(upload_settings.temp_folder.iterdir())


def test_failed_assembly_answers_not_complete(client, monkeypatch, upload_settings):
    def failing_assemble(self, chunk_paths, destination):
        return AssemblyResult(AssemblyStatus.FAILED, destination)

    monkeypatch.setattr(Assembler, 'assemble', failing_assemble)

    response = client.post('/upload', data=_form(1, total_size=50), files={'file': ('blob', b'A' * 50)})

    assert response.status_code == 200
    assert response.json()['complete'] is False
    assert (upload_settings.temp_folder / 'u1' / 'report.pdf.0001').exists()


def test_unstored_chunk_returns_500(client, monkeypatch):
    monkeypatch.setattr(ChunkStore, 'store_chunk', lambda self, *args: False)

    response = client.post('/upload', data=_form(1), files={'file': ('blob', b'A' * 100)})

    assert response.status_code == 500
    assert response.json()['code'] == 'CHUNK_NOT_STORED'
