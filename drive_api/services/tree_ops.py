"""
Tree operations: every mutation of folders, files and shares goes through
TreeOperations, which checks identity, existence and ownership before it
touches the store or the blob delegate.

The store only offers per-statement atomicity. Multi-step operations
(cascading delete, reorder, upload) are written as sequences of idempotent
steps; when one fails part-way the caller gets an error and is expected to
re-read the tree, and re-running the same operation finishes the job.
"""
import logging
import os
import secrets
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError

from drive_api.core.errors import (
    CorruptTree,
    Forbidden,
    InvalidArgument,
    NotFound,
    Unauthorized,
    UpstreamFailure,
)
from drive_api.models.file import File
from drive_api.models.file_share import FileShare
from drive_api.models.folder import Folder
from drive_api.services.aggregation import FolderSizes
from drive_api.services.blob_client import BlobDelegate
from drive_api.services.tree_store import ItemKind, TreeStore

logger = logging.getLogger(__name__)

ROOT_FOLDER_NAME = "Root"
DEFAULT_FOLDERS = ("Trash", "Shared", "Documents")

# 128 bits, hex-encoded
SHARE_TOKEN_BYTES = 16


def clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidArgument("Name cannot be empty")
    return cleaned


def keep_extension(original_name: str, new_name: str) -> str:
    """
    'report.pdf' renamed to 'summary' becomes 'summary.pdf';
    an explicit extension on the new name wins.
    """
    _, original_ext = os.path.splitext(original_name)
    _, new_ext = os.path.splitext(new_name)
    if original_ext and not new_ext:
        return f"{new_name}{original_ext}"
    return new_name


@dataclass
class DeleteSummary:
    folders_deleted: int = 0
    files_deleted: int = 0


@dataclass
class FolderEntry:
    id: int
    name: str
    parent_id: Optional[int]
    position: int
    created_at: Optional[datetime]
    size: int


@dataclass
class FolderContents:
    folder: Folder
    folders: List[FolderEntry]
    files: List[File]
    parents: List[Folder]
    root_folder_id: Optional[int]
    shares: Dict[int, str] = field(default_factory=dict)


@dataclass
class _SubtreePlan:
    # folder id -> direct sub-folder ids, for every folder in the subtree
    children: Dict[int, List[int]]
    # folder id -> direct files (only folders that have some)
    files: Dict[int, List[File]]


class TreeOperations:
    def __init__(
        self,
        store: TreeStore,
        blobs: BlobDelegate,
        max_depth: int = 64,
        delete_workers: int = 4,
    ):
        self.store = store
        self.blobs = blobs
        self.max_depth = max_depth
        self.delete_workers = max(1, delete_workers)
        self.sizes = FolderSizes(store, max_depth=max_depth)

    # ---------- checks ----------

    def _require_owner(self, owner_id: Optional[str]) -> str:
        if not owner_id:
            raise Unauthorized()
        return owner_id

    def _owned_folder(self, folder_id: int, owner_id: str, conceal: bool = False) -> Folder:
        """
        Load a folder the caller owns. A foreign folder is reported as
        Forbidden, or as NotFound when conceal is set.
        """
        folder = self.store.get_folder(folder_id)
        if folder is None or (conceal and folder.owner_id != owner_id):
            raise NotFound("Folder not found")
        if folder.owner_id != owner_id:
            raise Forbidden("You do not have access to this folder")
        return folder

    def _owned_file(self, file_id: int, owner_id: str, conceal: bool = False) -> File:
        file = self.store.get_file(file_id)
        if file is None or (conceal and file.owner_id != owner_id):
            raise NotFound("File not found")
        if file.owner_id != owner_id:
            raise Forbidden("You do not have access to this file")
        return file

    # ---------- reads ----------

    def find_root(self, owner_id: str) -> Optional[Folder]:
        owner_id = self._require_owner(owner_id)
        return self.store.get_root(owner_id)

    def get_root(self, owner_id: str) -> Folder:
        root = self.find_root(owner_id)
        if root is None:
            raise NotFound("No root folder; onboard the user first")
        return root

    def get_ancestors(self, folder_id: int, owner_id: str) -> List[Folder]:
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id)
        return self.store.get_ancestors(folder.id, self.max_depth)

    def get_folder_size(self, folder_id: int, owner_id: str) -> int:
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id)
        return self.sizes.folder_size(folder.id, owner_id)

    def get_folder_contents(self, folder_id: int, owner_id: str) -> FolderContents:
        """
        Everything a folder view needs: sub-folders with recursive sizes,
        files, the breadcrumb from the root and the share tokens of the
        listed files.
        """
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id)

        folders, files = self.store.get_children(folder.id, owner_id)
        sizes = self.sizes.folder_sizes([f.id for f in folders], owner_id)
        parents = self.store.get_ancestors(folder.id, self.max_depth)
        root = self.store.get_root(owner_id)

        listed = {f.id for f in files}
        shares = {
            share.file_id: share.token
            for share in self.store.list_shares(owner_id)
            if share.file_id in listed
        }

        return FolderContents(
            folder=folder,
            folders=[
                FolderEntry(
                    id=f.id,
                    name=f.name,
                    parent_id=f.parent_id,
                    position=f.position,
                    created_at=f.created_at,
                    size=sizes.get(f.id, 0),
                )
                for f in folders
            ],
            files=files,
            parents=parents,
            root_folder_id=root.id if root else None,
            shares=shares,
        )

    def list_shares(self, owner_id: str) -> List[FileShare]:
        owner_id = self._require_owner(owner_id)
        return self.store.list_shares(owner_id)

    # ---------- onboarding & folders ----------

    def onboard_user(self, owner_id: str) -> Folder:
        """
        Create the owner's root folder with the default children.
        If the owner already has a root it is returned untouched, so the
        one-root-per-owner rule holds however often this is called.
        """
        owner_id = self._require_owner(owner_id)

        existing = self.store.get_root(owner_id)
        if existing is not None:
            logger.info("Owner %s already onboarded (root %d)", owner_id, existing.id)
            return existing

        root = self.store.insert_folder(ROOT_FOLDER_NAME, None, owner_id, 0)
        for position, name in enumerate(DEFAULT_FOLDERS, start=1):
            self.store.insert_folder(name, root.id, owner_id, position)

        logger.info("Onboarded owner %s with root folder %d", owner_id, root.id)
        return root

    def create_folder(self, name: str, parent_id: int, owner_id: str) -> Folder:
        owner_id = self._require_owner(owner_id)
        name = clean_name(name)
        parent = self._owned_folder(parent_id, owner_id)

        depth = len(self.store.get_ancestors(parent.id, self.max_depth))
        if depth + 1 > self.max_depth:
            raise InvalidArgument(f"Folders cannot be nested deeper than {self.max_depth} levels")

        position = self.store.max_position(parent.id, "folder") + 1
        folder = self.store.insert_folder(name, parent.id, owner_id, position)
        logger.info("Created folder %d in %d for %s", folder.id, parent.id, owner_id)
        return folder

    def rename_folder(self, folder_id: int, owner_id: str, new_name: str) -> Folder:
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id, conceal=True)
        name = clean_name(new_name)

        self.store.update_name("folder", folder.id, owner_id, name)
        logger.info("Renamed folder %d for %s", folder.id, owner_id)
        return self.store.get_folder(folder.id)

    def move_folder(self, folder_id: int, new_parent_id: int, owner_id: str) -> Folder:
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id)
        if folder.parent_id is None:
            raise InvalidArgument("The root folder cannot be moved")

        target = self._owned_folder(new_parent_id, owner_id)
        chain = self.store.get_ancestors(target.id, self.max_depth)
        if any(f.id == folder.id for f in chain):
            raise InvalidArgument("A folder cannot be moved into itself or one of its sub-folders")

        if folder.parent_id == target.id:
            return folder

        if len(chain) + self._subtree_height(folder.id, owner_id) > self.max_depth:
            raise InvalidArgument(f"Folders cannot be nested deeper than {self.max_depth} levels")

        position = self.store.max_position(target.id, "folder") + 1
        self.store.update_parent("folder", folder.id, owner_id, target.id, position)
        logger.info("Moved folder %d to %d for %s", folder.id, target.id, owner_id)
        return self.store.get_folder(folder.id)

    def delete_folder(self, folder_id: int, owner_id: str) -> DeleteSummary:
        """
        Delete a folder with every descendant folder and file.

        One batched blob delete is issued per folder that holds files; the
        batches run concurrently. Records are then removed depth-first: a
        folder's files only once their blobs are gone, a folder only once
        its whole subtree is gone. A failed batch leaves its folder and that
        folder's ancestors in place and surfaces as UpstreamFailure.
        """
        owner_id = self._require_owner(owner_id)
        folder = self._owned_folder(folder_id, owner_id)
        if folder.parent_id is None:
            raise InvalidArgument("The root folder cannot be deleted")

        plan = self._plan_subtree(folder.id, owner_id)
        failed = self._release_blobs(plan)

        summary = DeleteSummary()
        self._purge(folder.id, plan, failed, owner_id, summary)

        if failed:
            logger.warning(
                "Partial delete of folder %d for %s: %d folder(s) kept after blob failures",
                folder_id,
                owner_id,
                len(failed),
            )
            raise UpstreamFailure(
                f"Could not delete files in {len(failed)} folder(s); "
                f"removed {summary.files_deleted} file(s) and "
                f"{summary.folders_deleted} folder(s). Retry the delete."
            )

        logger.info(
            "Deleted folder %d for %s (%d folders, %d files)",
            folder_id,
            owner_id,
            summary.folders_deleted,
            summary.files_deleted,
        )
        return summary

    def _subtree_height(self, folder_id: int, owner_id: str) -> int:
        """
        Number of folder levels from folder_id down to its deepest
        descendant, counting folder_id itself.
        """
        seen = {folder_id}
        frontier = [folder_id]
        height = 0
        while frontier:
            height += 1
            if height > self.max_depth:
                raise CorruptTree(f"Folder {folder_id} has more than {self.max_depth} levels")

            next_frontier = []
            for child in self.store.child_folders(frontier, owner_id):
                if child.id in seen:
                    raise CorruptTree(f"Folder {child.id} is reachable twice (cycle)")
                seen.add(child.id)
                next_frontier.append(child.id)
            frontier = next_frontier

        return height

    def _plan_subtree(self, folder_id: int, owner_id: str) -> _SubtreePlan:
        children: Dict[int, List[int]] = {folder_id: []}
        files: Dict[int, List[File]] = {}

        frontier = [folder_id]
        depth = 0
        while frontier:
            if depth >= self.max_depth:
                raise CorruptTree(f"Folder {folder_id} has more than {self.max_depth} levels")

            for file in self.store.files_in(frontier, owner_id):
                files.setdefault(file.parent_id, []).append(file)

            next_frontier = []
            for child in self.store.child_folders(frontier, owner_id):
                if child.id in children:
                    raise CorruptTree(f"Folder {child.id} is reachable twice (cycle)")
                children[child.parent_id].append(child.id)
                children[child.id] = []
                next_frontier.append(child.id)

            frontier = next_frontier
            depth += 1

        return _SubtreePlan(children=children, files=files)

    def _release_blobs(self, plan: _SubtreePlan) -> Set[int]:
        """
        Delete the blobs of every folder in the plan, one batch per folder.
        Returns the ids of folders whose batch failed.
        """
        batches = {
            folder_id: [self.blobs.key_for_url(f.url) for f in files]
            for folder_id, files in plan.files.items()
            if files
        }
        failed: Set[int] = set()
        if not batches:
            return failed

        workers = min(self.delete_workers, len(batches))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.blobs.delete, keys): folder_id
                for folder_id, keys in batches.items()
            }
            for future in as_completed(futures):
                folder_id = futures[future]
                try:
                    future.result()
                except UpstreamFailure as e:
                    logger.warning("Blob batch for folder %d failed: %s", folder_id, e.detail)
                    failed.add(folder_id)

        return failed

    def _purge(
        self,
        folder_id: int,
        plan: _SubtreePlan,
        failed: Set[int],
        owner_id: str,
        summary: DeleteSummary,
    ) -> bool:
        removed = folder_id not in failed

        if removed:
            file_ids = [f.id for f in plan.files.get(folder_id, [])]
            if file_ids:
                self.store.delete_shares_for_files(file_ids)
                summary.files_deleted += self.store.delete_files(file_ids, owner_id)

        for child_id in plan.children[folder_id]:
            child_removed = self._purge(child_id, plan, failed, owner_id, summary)
            removed = removed and child_removed

        if removed:
            summary.folders_deleted += self.store.delete_folders([folder_id], owner_id)
        return removed

    # ---------- files ----------

    def authorize_upload(self, folder_id: int, owner_id: str) -> Folder:
        """
        Upload gate: the target folder must belong to the caller. Checked
        before any bytes reach the blob store.
        """
        owner_id = self._require_owner(owner_id)
        return self._owned_folder(folder_id, owner_id)

    def complete_upload(
        self,
        name: str,
        size: int,
        url: str,
        parent_id: int,
        owner_id: str,
    ) -> File:
        """
        Record a file the blob store has confirmed, as the last sibling of
        its folder. The callback carries parent and owner on its own, so the
        upload gate runs again here.
        """
        folder = self.authorize_upload(parent_id, owner_id)
        name = clean_name(name)
        if size < 0:
            raise InvalidArgument("File size cannot be negative")

        position = self.store.max_position(folder.id, "file") + 1
        file = self.store.insert_file(name, size, url, folder.id, owner_id, position)
        logger.info("Recorded upload %d (%d bytes) in %d for %s", file.id, size, folder.id, owner_id)
        return file

    def upload_file(self, name: str, data: bytes, folder_id: int, owner_id: str) -> File:
        folder = self.authorize_upload(folder_id, owner_id)
        name = clean_name(name)

        url, key = self.blobs.store(name, data)
        try:
            return self.complete_upload(name, len(data), url, folder.id, owner_id)
        except Exception:
            logger.exception("Recording upload failed, rolling back blob %s", key)
            self._rollback_blob(key)
            raise

    def _rollback_blob(self, key: str) -> None:
        try:
            self.blobs.delete([key])
        except UpstreamFailure:
            # orphaned blob; nothing references it
            logger.exception("Failed to roll back blob %s", key)

    def rename_file(self, file_id: int, owner_id: str, new_name: str) -> File:
        """
        Rename the blob first and the record second, so a failed blob
        rename leaves the record as it was.
        """
        owner_id = self._require_owner(owner_id)
        file = self._owned_file(file_id, owner_id, conceal=True)
        name = keep_extension(file.name, clean_name(new_name))

        if name == file.name:
            return file

        key = self.blobs.key_for_url(file.url)
        new_url = self.blobs.rename(key, name)

        self.store.update_name("file", file.id, owner_id, name, url=new_url)
        logger.info("Renamed file %d for %s", file.id, owner_id)
        return self.store.get_file(file.id)

    def move_file(self, file_id: int, new_parent_id: int, owner_id: str) -> File:
        owner_id = self._require_owner(owner_id)
        file = self._owned_file(file_id, owner_id)
        target = self._owned_folder(new_parent_id, owner_id)

        if file.parent_id == target.id:
            return file

        position = self.store.max_position(target.id, "file") + 1
        self.store.update_parent("file", file.id, owner_id, target.id, position)
        logger.info("Moved file %d to %d for %s", file.id, target.id, owner_id)
        return self.store.get_file(file.id)

    def delete_file(self, file_id: int, owner_id: str) -> None:
        """
        Blob first, then record: if the blob store refuses, the record
        stays and still points at reachable bytes.
        """
        owner_id = self._require_owner(owner_id)
        file = self._owned_file(file_id, owner_id)

        self.blobs.delete([self.blobs.key_for_url(file.url)])

        self.store.delete_shares_for_files([file.id])
        self.store.delete_files([file.id], owner_id)
        logger.info("Deleted file %d for %s", file_id, owner_id)

    # ---------- ordering ----------

    def reorder_items(self, items: Sequence, owner_id: str) -> int:
        """
        Apply new positions one item at a time. Each update stands on its
        own: duplicate positions are allowed (id breaks ties on read),
        items the caller does not own are skipped, and a failure part-way
        keeps the updates already applied. Returns how many were applied.
        """
        owner_id = self._require_owner(owner_id)

        applied = 0
        for index, item in enumerate(items):
            try:
                updated = self.store.update_position(
                    item.kind, item.id, owner_id, item.new_position
                )
            except SQLAlchemyError as e:
                logger.exception(
                    "Reorder for %s failed at item %d of %d",
                    owner_id,
                    index + 1,
                    len(items),
                )
                raise UpstreamFailure(
                    f"Reorder stopped at item {index + 1} of {len(items)} "
                    f"after {applied} update(s); refresh and retry"
                ) from e

            if updated:
                applied += 1
            else:
                logger.warning(
                    "Reorder skipped %s %d: not found for %s",
                    item.kind,
                    item.id,
                    owner_id,
                )

        logger.info("Reordered %d of %d item(s) for %s", applied, len(items), owner_id)
        return applied

    # ---------- shares ----------

    def create_file_share_link(self, file_id: int, owner_id: str) -> str:
        owner_id = self._require_owner(owner_id)
        file = self._owned_file(file_id, owner_id)

        existing = self.store.find_share(file.id, owner_id)
        if existing is not None:
            return existing.token

        token = secrets.token_hex(SHARE_TOKEN_BYTES)
        self.store.insert_share(file.id, owner_id, token)
        logger.info("Created share for file %d for %s", file.id, owner_id)
        return token

    def revoke_file_share_link(self, file_id: int, owner_id: str) -> int:
        owner_id = self._require_owner(owner_id)
        file = self._owned_file(file_id, owner_id)

        # removes duplicates left by racing creates too
        revoked = self.store.delete_shares([file.id], owner_id)
        logger.info("Revoked %d share(s) for file %d for %s", revoked, file.id, owner_id)
        return revoked
