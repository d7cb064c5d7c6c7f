"""Tests for the httpx blob store client."""

import json

import httpx
import pytest

from drive_api.core.errors import NotFound, UpstreamFailure
from drive_api.services.blob_client import BlobClient, key_from_url

PREFIX = 'https://cdn.test/f/'


def make_client(handler):
    return BlobClient(
        base_url='http://blob-node:9001/',
        url_prefix=PREFIX,
        transport=httpx.MockTransport(handler),
    )


def test_store_puts_body_and_returns_url_and_key():
    """Bytes go up with PUT; the node hands back key and url."""
    seen = {}

    def handler(request):
        seen['method'] = request.method
        seen['path'] = request.url.raw_path.decode()
        seen['body'] = request.content
        return httpx.Response(201, json={'key': 'abc', 'url': f'{PREFIX}abc'})

    url, key = make_client(handler).store('my report.pdf', b'hello')

    assert (url, key) == (f'{PREFIX}abc', 'abc')
    assert seen == {
        'method': 'PUT',
        'path': '/blobs/my%20report.pdf',
        'body': b'hello',
    }


def test_delete_sends_one_batch():
    """All keys travel in one request."""
    calls = []

    def handler(request):
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={'deleted': 2})

    make_client(handler).delete(['k1', 'k2'])

    assert calls == [('/blobs/delete', {'keys': ['k1', 'k2']})]


def test_delete_nothing_skips_request():
    """An empty batch never hits the network."""
    def handler(request):
        raise AssertionError('no request expected')

    make_client(handler).delete([])


def test_rename_returns_new_url():
    """Renames post the new name and return the url."""
    def handler(request):
        assert request.url.path == '/blobs/abc/rename'
        assert json.loads(request.content) == {'name': 'summary.pdf'}
        return httpx.Response(200, json={'key': 'abc', 'url': f'{PREFIX}abc'})

    assert make_client(handler).rename('abc', 'summary.pdf') == f'{PREFIX}abc'


@pytest.mark.parametrize('status_code', [400, 404, 500, 503])
def test_error_status_is_upstream_failure(status_code):
    """Any non-success answer from the store is an upstream failure."""
    def handler(request):
        return httpx.Response(status_code, text='nope')

    with pytest.raises(UpstreamFailure):
        make_client(handler).delete(['k1'])


def test_unreachable_store_is_upstream_failure():
    """Connection errors surface as upstream failures."""
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(UpstreamFailure):
        make_client(handler).store('a.txt', b'data')


def test_open_streams_body():
    """Opening a blob yields a streaming response."""
    def handler(request):
        assert request.url.path == '/f/abc'
        return httpx.Response(200, content=b'payload', headers={'content-type': 'text/plain'})

    resp = make_client(handler).open('abc')
    try:
        assert resp.headers['content-type'] == 'text/plain'
        assert b''.join(resp.iter_bytes()) == b'payload'
    finally:
        resp.close()


def test_open_missing_blob_is_not_found():
    """A 404 from the store means the file is gone."""
    def handler(request):
        return httpx.Response(404)

    with pytest.raises(NotFound):
        make_client(handler).open('abc')


def test_open_server_error_is_upstream_failure():
    """Other failures while opening are upstream failures."""
    def handler(request):
        return httpx.Response(502)

    with pytest.raises(UpstreamFailure):
        make_client(handler).open('abc')


def test_key_from_url():
    """The public prefix is stripped; bare keys pass through."""
    assert key_from_url(f'{PREFIX}abc', PREFIX) == 'abc'
    assert key_from_url('abc', PREFIX) == 'abc'
    assert make_client(lambda request: httpx.Response(200)).key_for_url(f'{PREFIX}xyz') == 'xyz'
