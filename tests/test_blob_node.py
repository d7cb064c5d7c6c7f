"""Tests for the standalone blob node."""

import pytest
from fastapi.testclient import TestClient

import blob_node.main as blob_node


@pytest.fixture
def node(tmp_path, monkeypatch):
    """Blob node writing into a temporary directory.

    Yields:
        TestClient for the node app.
    """
    monkeypatch.setattr(blob_node, 'BLOB_DIR', tmp_path / 'blobs')
    monkeypatch.setattr(blob_node, 'BLOB_PUBLIC_URL', 'https://cdn.test/')
    with TestClient(blob_node.app) as client:
        yield client


def put(node, name, data):
    resp = node.put(f'/blobs/{name}', content=data)
    assert resp.status_code == 201
    return resp.json()


def test_put_then_get(node):
    """Stored bytes come back with a type guessed from the name."""
    stored = put(node, 'report.pdf', b'%PDF-1.4')

    assert len(stored['key']) == 32
    assert stored['url'] == f"https://cdn.test/f/{stored['key']}"

    resp = node.get(f"/f/{stored['key']}")
    assert resp.status_code == 200
    assert resp.content == b'%PDF-1.4'
    assert resp.headers['content-type'] == 'application/pdf'


def test_rename_changes_served_type(node):
    """Renaming keeps the key and bytes but updates the name."""
    stored = put(node, 'report.pdf', b'plain words')

    renamed = node.post(f"/blobs/{stored['key']}/rename", json={'name': 'notes.txt'})

    assert renamed.status_code == 200
    assert renamed.json() == stored
    resp = node.get(f"/f/{stored['key']}")
    assert resp.headers['content-type'].startswith('text/plain')
    assert resp.content == b'plain words'


def test_rename_missing_blob_is_not_found(node):
    """Only existing blobs can be renamed."""
    resp = node.post(f"/blobs/{'0' * 32}/rename", json={'name': 'x.txt'})

    assert resp.status_code == 404


def test_batch_delete_ignores_unknown_keys(node):
    """Deletes are safe to retry and skip keys that do not exist."""
    first = put(node, 'a.txt', b'a')
    second = put(node, 'b.txt', b'b')

    resp = node.post('/blobs/delete', json={'keys': [first['key'], '0' * 32, '../etc']})

    assert resp.json() == {'deleted': 1}
    assert node.get(f"/f/{first['key']}").status_code == 404
    assert node.get(f"/f/{second['key']}").status_code == 200

    again = node.post('/blobs/delete', json={'keys': [first['key']]})
    assert again.json() == {'deleted': 0}


def test_malformed_key_is_not_found(node):
    """Keys that were never issued do not touch the filesystem."""
    assert node.get('/f/not-a-key').status_code == 404


def test_health(node):
    """The node answers its health check."""
    assert node.get('/health').json() == {'status': 'ok'}
