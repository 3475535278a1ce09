"""Tests for the REST API endpoints."""

import hashlib
import io
import tarfile

import pytest
from fastapi.testclient import TestClient

from neurolink.api import create_app


@pytest.fixture
def client(service):
    """Create FastAPI test client."""
    with TestClient(create_app(service)) as test_client:
        yield test_client


def init(client, filename, total_size, chunk_size, batch_id=None):
    response = client.post('/transfer/init', json={
        'filename': filename,
        'total_size': total_size,
        'chunk_size': chunk_size,
        'batch_id': batch_id,
    })
    return response


def send_chunk(client, transfer_id, index, data, chunk_hash=None):
    form = {'transfer_id': transfer_id, 'chunk_index': str(index)}
    if chunk_hash is not None:
        form['chunk_hash'] = chunk_hash
    return client.post('/transfer/chunk', data=form,
                       files={'chunk': ('blob', data, 'application/octet-stream')})


def upload(client, filename, chunks, chunk_size, batch_id=None):
    transfer_id = init(client, filename, sum(map(len, chunks)), chunk_size,
                       batch_id).json()['data']['transfer_id']
    for index, data in enumerate(chunks):
        send_chunk(client, transfer_id, index, data)
    return client.post('/transfer/complete', json={'transfer_id': transfer_id})


def test_root_and_health(client):
    assert client.get('/').json()['status'] == 'running'
    assert client.get('/health').json() == {'success': True, 'data': 'healthy', 'error': None}


def test_chunked_upload_end_to_end(client, storage_dir):
    response = init(client, 'a.bin', 1500, 1000)
    assert response.status_code == 200
    data = response.json()['data']
    assert data['total_chunks'] == 2
    transfer_id = data['transfer_id']

    response = send_chunk(client, transfer_id, 1, bytes(500))
    assert response.json()['data'] == {
        'chunk_hash': hashlib.sha256(bytes(500)).hexdigest(),
        'received_count': 1,
        'total_chunks': 2,
    }

    status = client.get(f'/transfer/{transfer_id}/status').json()['data']
    assert status == {'transfer_id': transfer_id, 'status': 'in_progress', 'progress': '50%'}

    send_chunk(client, transfer_id, 0, bytes(1000))
    response = client.post('/transfer/complete', json={'transfer_id': transfer_id})

    assert response.status_code == 200
    body = response.json()['data']
    assert body['status'] == 'completed'
    assert body['filename'] == 'a.bin'
    assert body['final_hash'] == hashlib.sha256(bytes(1500)).hexdigest()
    assert (storage_dir / 'a.bin').read_bytes() == bytes(1500)


def test_zero_chunk_size_returns_bad_request(client):
    response = init(client, 'x', 10, 0)

    assert response.status_code == 400
    body = response.json()
    assert body['success'] is False
    assert 'chunk_size' in body['error']


def test_negative_total_size_rejected(client):
    response = init(client, 'neg.bin', -5, 10)

    assert response.status_code == 422
    assert client.get('/stats').json()['data']['active_transfers'] == 0


@pytest.mark.parametrize('filename', ['../escaped.bin', 'sub/nested.bin', '..'])
def test_unsafe_filename_rejected(client, storage_dir, filename):
    response = init(client, filename, 10, 5)

    assert response.status_code == 400
    assert response.json()['success'] is False
    assert 'Invalid filename' in response.json()['error']
    assert not (storage_dir.parent / 'escaped.bin').exists()


def test_out_of_range_chunk(client):
    transfer_id = init(client, 'f', 100, 10).json()['data']['transfer_id']

    response = send_chunk(client, transfer_id, 10, b'x')

    assert response.status_code == 400
    assert response.json()['success'] is False


def test_chunk_hash_mismatch(client):
    transfer_id = init(client, 'f', 10, 5).json()['data']['transfer_id']

    response = send_chunk(client, transfer_id, 0, b'abcde', chunk_hash='f' * 64)

    assert response.status_code == 400
    assert 'hash' in response.json()['error'].lower()


def test_chunk_for_unknown_transfer(client):
    response = send_chunk(client, 'trans_missing', 0, b'x')
    assert response.status_code == 404


def test_chunk_missing_form_field(client):
    response = client.post('/transfer/chunk', data={'transfer_id': 'x'})
    assert response.status_code == 422


def test_incomplete_transfer(client):
    transfer_id = init(client, 'f', 100, 10).json()['data']['transfer_id']
    send_chunk(client, transfer_id, 0, b'0123456789')

    response = client.post('/transfer/complete', json={'transfer_id': transfer_id})

    assert response.status_code == 400
    assert 'expected 10' in response.json()['error']


def test_status_of_unknown_transfer(client):
    response = client.get('/transfer/trans_missing/status')

    assert response.status_code == 404
    assert response.json()['error'] == 'Transfer not found'


def test_cancel_transfer(client):
    transfer_id = init(client, 'f', 10, 5).json()['data']['transfer_id']

    assert client.delete(f'/transfer/{transfer_id}').status_code == 200
    assert client.delete(f'/transfer/{transfer_id}').status_code == 404
    assert client.get(f'/transfer/{transfer_id}/status').status_code == 404


def test_uploads_and_files_listing(client):
    upload(client, 'p.txt', [b'pp'], 2, batch_id='B1')
    upload(client, 'q.txt', [b'qq'], 2, batch_id='B1')

    batches = client.get('/uploads').json()['data']
    assert len(batches) == 1
    assert batches[0]['batch_id'] == 'B1'
    assert [f['name'] for f in batches[0]['files']] == ['p.txt', 'q.txt']

    files = client.get('/files').json()['data']
    assert sorted(f['name'] for f in files) == ['p.txt', 'q.txt']


def test_download_batch(client):
    upload(client, 'one.txt', [b'1'], 1, batch_id='B')
    upload(client, 'two.txt', [b'2'], 1, batch_id='B')

    response = client.get('/download/batch/B')

    assert response.status_code == 200
    assert response.headers['content-type'] == 'application/gzip'
    assert 'upload-B.tar.gz' in response.headers['content-disposition']
    with tarfile.open(fileobj=io.BytesIO(response.content), mode='r:gz') as tf:
        assert sorted(tf.getnames()) == ['one.txt', 'two.txt']


def test_download_unknown_batch(client):
    assert client.get('/download/batch/nope').status_code == 404


def test_download_chunk(client):
    upload(client, 'data.bin', [b'0123456789'], 10)

    response = client.get('/download/chunk/data.bin', params={'index': 1, 'chunk_size': 4})

    assert response.status_code == 200
    assert response.content == b'4567'
    assert 'data.bin.part1' in response.headers['content-disposition']

    bad = client.get('/download/chunk/data.bin', params={'index': 0, 'chunk_size': 0})
    assert bad.status_code == 400


def test_shared_file_served(client):
    upload(client, 'hello.txt', [b'hello'], 5)

    response = client.get('/shared/hello.txt')

    assert response.status_code == 200
    assert response.content == b'hello'
    assert client.get('/shared/nothing.txt').status_code == 404


def test_stats(client):
    init(client, 'f', 10, 5)

    stats = client.get('/stats').json()['data']

    assert stats['active_transfers'] == 1
    assert stats['completed_uploads'] == 0
