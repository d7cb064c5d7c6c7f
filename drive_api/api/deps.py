from fastapi import Depends
from sqlalchemy.orm import Session

from drive_api.core.config import settings
from drive_api.db.session import get_db
from drive_api.services.blob_client import BlobDelegate, get_blob_client
from drive_api.services.share_resolver import ShareResolver
from drive_api.services.tree_ops import TreeOperations
from drive_api.services.tree_store import TreeStore


def get_blob_delegate() -> BlobDelegate:
    return get_blob_client()


def get_tree_store(db: Session = Depends(get_db)) -> TreeStore:
    return TreeStore(db)


def get_tree_ops(
    store: TreeStore = Depends(get_tree_store),
    blobs: BlobDelegate = Depends(get_blob_delegate),
) -> TreeOperations:
    return TreeOperations(
        store,
        blobs,
        max_depth=settings.MAX_TREE_DEPTH,
        delete_workers=settings.DELETE_WORKERS,
    )


def get_share_resolver(
    store: TreeStore = Depends(get_tree_store),
    blobs: BlobDelegate = Depends(get_blob_delegate),
) -> ShareResolver:
    return ShareResolver(store, blobs)
