import logging
from typing import Tuple

import httpx

from drive_api.core.errors import NotFound
from drive_api.models.file import File
from drive_api.services.blob_client import BlobDelegate
from drive_api.services.tree_store import TreeStore

logger = logging.getLogger(__name__)


class ShareResolver:
    """
    Anonymous access to shared files. Holding the token is the only
    authorization; no owner is involved.
    """

    def __init__(self, store: TreeStore, blobs: BlobDelegate):
        self.store = store
        self.blobs = blobs

    def resolve(self, token: str) -> File:
        share = self.store.find_share_by_token(token)
        if share is None:
            raise NotFound("Share not found")

        file = self.store.get_file(share.file_id)
        if file is None:
            logger.warning("Share %d points to missing file %d", share.id, share.file_id)
            raise NotFound("File not found")
        return file

    def open_download(self, token: str) -> Tuple[File, httpx.Response]:
        """
        Resolve the token and start streaming the blob through the
        delegate, so the blob URL never reaches the caller.
        """
        file = self.resolve(token)
        stream = self.blobs.open(self.blobs.key_for_url(file.url))
        logger.info("Serving shared file %d", file.id)
        return file, stream
