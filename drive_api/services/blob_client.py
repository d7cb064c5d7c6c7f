import logging
from typing import List, Optional, Protocol, Sequence, Tuple
from urllib.parse import quote

import httpx

from drive_api.core.config import settings
from drive_api.core.errors import NotFound, UpstreamFailure

logger = logging.getLogger(__name__)


class BlobDelegate(Protocol):
    """
    What the tree engine needs from the external object store.
    All calls block until the store answers and are never retried here.
    """

    def store(self, name: str, data: bytes) -> Tuple[str, str]:
        ...

    def delete(self, keys: Sequence[str]) -> None:
        ...

    def rename(self, key: str, new_name: str) -> str:
        ...

    def open(self, key: str) -> httpx.Response:
        ...

    def key_for_url(self, url: str) -> str:
        ...


def key_from_url(url: str, prefix: str) -> str:
    """
    Strip the store's public URL prefix to get the blob key.
    URLs that do not carry the prefix are treated as bare keys.
    """
    if url.startswith(prefix):
        return url[len(prefix):]
    return url


class BlobClient:
    """
    httpx client for a blob node:
      PUT  /blobs/{name}        -> {"key", "url"}
      POST /blobs/delete        {"keys": [...]}
      POST /blobs/{key}/rename  {"name"} -> {"url"}
      GET  /f/{key}             raw bytes
    """

    def __init__(
        self,
        base_url: str,
        url_prefix: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url_prefix = url_prefix
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def key_for_url(self, url: str) -> str:
        return key_from_url(url, self.url_prefix)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.exception("Blob store unreachable: %s %s", method, path)
            raise UpstreamFailure(f"Failed to reach blob store: {e}")

        if resp.status_code not in (200, 201, 204):
            logger.error(
                "Blob store returned %s for %s %s: %s",
                resp.status_code,
                method,
                path,
                resp.text,
            )
            raise UpstreamFailure(f"Blob store returned {resp.status_code}: {resp.text}")
        return resp

    def store(self, name: str, data: bytes) -> Tuple[str, str]:
        resp = self._request("PUT", f"/blobs/{quote(name, safe='')}", content=data)
        body = resp.json()
        logger.info("Stored blob %s (%d bytes) as %s", name, len(data), body["key"])
        return body["url"], body["key"]

    def delete(self, keys: Sequence[str]) -> None:
        batch: List[str] = list(keys)
        if not batch:
            return
        self._request("POST", "/blobs/delete", json={"keys": batch})
        logger.info("Deleted %d blob(s)", len(batch))

    def rename(self, key: str, new_name: str) -> str:
        resp = self._request(
            "POST",
            f"/blobs/{quote(key, safe='')}/rename",
            json={"name": new_name},
        )
        logger.info("Renamed blob %s to %s", key, new_name)
        return resp.json()["url"]

    def open(self, key: str) -> httpx.Response:
        """
        Start streaming a blob. The caller must close the returned response.
        """
        request = self._client.build_request("GET", f"/f/{quote(key, safe='')}")
        try:
            resp = self._client.send(request, stream=True)
        except httpx.RequestError as e:
            logger.exception("Blob store unreachable while opening %s", key)
            raise UpstreamFailure(f"Failed to reach blob store: {e}")

        if resp.status_code != 200:
            resp.close()
            if resp.status_code == 404:
                raise NotFound("File not found")
            raise UpstreamFailure(f"Blob store returned {resp.status_code}")
        return resp


_blob_client: Optional[BlobClient] = None


def get_blob_client() -> BlobClient:
    global _blob_client
    if _blob_client is None:
        _blob_client = BlobClient(
            base_url=settings.BLOB_STORE_URL,
            url_prefix=settings.blob_url_prefix,
            timeout=settings.BLOB_TIMEOUT_SECONDS,
        )
    return _blob_client
