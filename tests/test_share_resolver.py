"""Tests for anonymous share access."""

import pytest

from drive_api.core.errors import NotFound
from drive_api.services.share_resolver import ShareResolver
from tests.fakes import OWNER


@pytest.fixture
def resolver(store, blobs):
    return ShareResolver(store, blobs)


def test_resolve_token_to_file(ops, resolver, root, upload):
    """A live token leads to its file."""
    file = upload(root, 'public.pdf', size=42)
    token = ops.create_file_share_link(file.id, OWNER)

    resolved = resolver.resolve(token)

    assert resolved.id == file.id
    assert resolved.size == 42


def test_unknown_token_is_not_found(resolver):
    """Guessing a token gets nothing."""
    with pytest.raises(NotFound):
        resolver.resolve('0' * 32)


def test_revoked_token_is_not_found(ops, resolver, root, upload):
    """Revoking kills the link."""
    file = upload(root, 'public.pdf')
    token = ops.create_file_share_link(file.id, OWNER)
    ops.revoke_file_share_link(file.id, OWNER)

    with pytest.raises(NotFound):
        resolver.resolve(token)


def test_share_of_missing_file_is_not_found(ops, store, resolver, root, upload):
    """A share whose file row is gone resolves to NotFound."""
    file = upload(root, 'public.pdf')
    file_id = file.id
    token = ops.create_file_share_link(file_id, OWNER)
    store.delete_files([file_id], OWNER)

    with pytest.raises(NotFound):
        resolver.resolve(token)


def test_open_download_streams_blob(ops, resolver, root, upload):
    """Downloads come through the delegate, not the blob URL."""
    file = upload(root, 'public.txt', size=3)
    token = ops.create_file_share_link(file.id, OWNER)

    resolved, stream = resolver.open_download(token)
    try:
        body = b''.join(stream.iter_bytes())
    finally:
        stream.close()

    assert resolved.name == 'public.txt'
    assert body == b'xxx'


def test_open_download_missing_blob_is_not_found(ops, blobs, resolver, root, upload):
    """A record whose blob vanished cannot be downloaded."""
    file = upload(root, 'public.txt')
    token = ops.create_file_share_link(file.id, OWNER)
    blobs.blobs.clear()

    with pytest.raises(NotFound):
        resolver.open_download(token)
