import logging
from typing import Dict, Iterable, List, Literal, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drive_api.core.errors import CorruptTree, NotFound
from drive_api.models.file import File
from drive_api.models.file_share import FileShare
from drive_api.models.folder import Folder

logger = logging.getLogger(__name__)

ItemKind = Literal["file", "folder"]


def _model_for(kind: ItemKind):
    if kind == "file":
        return File
    if kind == "folder":
        return Folder
    raise ValueError(f"Unknown item kind: {kind!r}")


class TreeStore:
    """
    Persisted folder/file graph, sibling ordering and share tokens.

    Every mutation is committed on its own. Callers that need several
    statements to look atomic (cascading delete, reorder) have to make each
    step idempotent; deleting or updating an id that is already gone touches
    zero rows instead of failing.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Tree store commit failed")
            raise

    # ---------- reads ----------

    def get_folder(self, folder_id: int) -> Optional[Folder]:
        return self.db.get(Folder, folder_id)

    def get_file(self, file_id: int) -> Optional[File]:
        return self.db.get(File, file_id)

    def get_root(self, owner_id: str) -> Optional[Folder]:
        return (
            self.db.query(Folder)
            .filter(
                Folder.owner_id == owner_id,
                Folder.parent_id.is_(None),
            )
            .order_by(Folder.id.asc())
            .first()
        )

    def get_child_folders(self, parent_id: int, owner_id: str) -> List[Folder]:
        return self.child_folders([parent_id], owner_id)

    def get_child_files(self, parent_id: int, owner_id: str) -> List[File]:
        return self.files_in([parent_id], owner_id)

    def get_children(self, parent_id: int, owner_id: str) -> Tuple[List[Folder], List[File]]:
        """
        Direct children of a folder, each list sorted by (position, id).
        """
        return (
            self.get_child_folders(parent_id, owner_id),
            self.get_child_files(parent_id, owner_id),
        )

    def get_ancestors(self, folder_id: int, max_depth: int) -> List[Folder]:
        """
        Chain from the root down to folder_id (inclusive), built by walking
        parent links upward.

        Raises NotFound if folder_id itself is missing and CorruptTree if a
        link dangles, loops back on itself or the chain grows past max_depth.
        """
        folder = self.get_folder(folder_id)
        if folder is None:
            raise NotFound(f"Folder {folder_id} not found")

        chain = [folder]
        seen = {folder.id}
        current_id = folder.parent_id

        while current_id is not None:
            if current_id in seen:
                raise CorruptTree(f"Cycle in parent links above folder {folder_id}")
            if len(chain) >= max_depth:
                raise CorruptTree(
                    f"Folder {folder_id} is nested deeper than {max_depth} levels"
                )

            parent = self.get_folder(current_id)
            if parent is None:
                raise CorruptTree(
                    f"Folder {chain[-1].id} points to missing parent {current_id}"
                )

            chain.append(parent)
            seen.add(parent.id)
            current_id = parent.parent_id

        chain.reverse()
        return chain

    def child_folders(self, parent_ids: Iterable[int], owner_id: str) -> List[Folder]:
        ids = list(parent_ids)
        if not ids:
            return []
        return (
            self.db.query(Folder)
            .filter(
                Folder.parent_id.in_(ids),
                Folder.owner_id == owner_id,
            )
            .order_by(Folder.position.asc(), Folder.id.asc())
            .all()
        )

    def files_in(self, parent_ids: Iterable[int], owner_id: str) -> List[File]:
        ids = list(parent_ids)
        if not ids:
            return []
        return (
            self.db.query(File)
            .filter(
                File.parent_id.in_(ids),
                File.owner_id == owner_id,
            )
            .order_by(File.position.asc(), File.id.asc())
            .all()
        )

    def file_size_totals(self, parent_ids: Iterable[int], owner_id: str) -> Dict[int, int]:
        """
        Sum of direct file sizes per parent folder, in a single grouped query.
        Parents without files are absent from the result.
        """
        ids = list(parent_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(File.parent_id, func.sum(File.size))
            .filter(
                File.parent_id.in_(ids),
                File.owner_id == owner_id,
            )
            .group_by(File.parent_id)
            .all()
        )
        return {parent_id: int(total or 0) for parent_id, total in rows}

    def max_position(self, parent_id: int, kind: ItemKind) -> int:
        model = _model_for(kind)
        result = (
            self.db.query(func.max(model.position))
            .filter(model.parent_id == parent_id)
            .scalar()
        )
        return result or 0

    def find_share(self, file_id: int, owner_id: str) -> Optional[FileShare]:
        return (
            self.db.query(FileShare)
            .filter(
                FileShare.file_id == file_id,
                FileShare.owner_id == owner_id,
            )
            .order_by(FileShare.id.asc())
            .first()
        )

    def find_share_by_token(self, token: str) -> Optional[FileShare]:
        return self.db.query(FileShare).filter(FileShare.token == token).first()

    def list_shares(self, owner_id: str) -> List[FileShare]:
        return (
            self.db.query(FileShare)
            .filter(FileShare.owner_id == owner_id)
            .order_by(FileShare.created_at.desc(), FileShare.id.desc())
            .all()
        )

    # ---------- writes ----------

    def insert_folder(
        self,
        name: str,
        parent_id: Optional[int],
        owner_id: str,
        position: int,
    ) -> Folder:
        folder = Folder(
            name=name,
            parent_id=parent_id,
            owner_id=owner_id,
            position=position,
        )
        self.db.add(folder)
        self._commit()
        self.db.refresh(folder)
        return folder

    def insert_file(
        self,
        name: str,
        size: int,
        url: str,
        parent_id: int,
        owner_id: str,
        position: int,
    ) -> File:
        file = File(
            name=name,
            size=size,
            url=url,
            parent_id=parent_id,
            owner_id=owner_id,
            position=position,
        )
        self.db.add(file)
        self._commit()
        self.db.refresh(file)
        return file

    def insert_share(self, file_id: int, owner_id: str, token: str) -> FileShare:
        share = FileShare(file_id=file_id, owner_id=owner_id, token=token)
        self.db.add(share)
        self._commit()
        self.db.refresh(share)
        return share

    def update_name(
        self,
        kind: ItemKind,
        item_id: int,
        owner_id: str,
        name: str,
        url: Optional[str] = None,
    ) -> int:
        model = _model_for(kind)
        values = {model.name: name}
        if url is not None:
            if kind != "file":
                raise ValueError("Only files carry a blob url")
            values[File.url] = url
        updated = (
            self.db.query(model)
            .filter(model.id == item_id, model.owner_id == owner_id)
            .update(values, synchronize_session="fetch")
        )
        self._commit()
        return updated

    def update_position(self, kind: ItemKind, item_id: int, owner_id: str, position: int) -> int:
        model = _model_for(kind)
        updated = (
            self.db.query(model)
            .filter(model.id == item_id, model.owner_id == owner_id)
            .update({model.position: position}, synchronize_session="fetch")
        )
        self._commit()
        return updated

    def update_parent(
        self,
        kind: ItemKind,
        item_id: int,
        owner_id: str,
        parent_id: int,
        position: int,
    ) -> int:
        model = _model_for(kind)
        updated = (
            self.db.query(model)
            .filter(model.id == item_id, model.owner_id == owner_id)
            .update(
                {model.parent_id: parent_id, model.position: position},
                synchronize_session="fetch",
            )
        )
        self._commit()
        return updated

    def delete_files(self, file_ids: Iterable[int], owner_id: str) -> int:
        ids = list(file_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(File)
            .filter(File.id.in_(ids), File.owner_id == owner_id)
            .delete(synchronize_session="fetch")
        )
        self._commit()
        return deleted

    def delete_folders(self, folder_ids: Iterable[int], owner_id: str) -> int:
        ids = list(folder_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(Folder)
            .filter(Folder.id.in_(ids), Folder.owner_id == owner_id)
            .delete(synchronize_session="fetch")
        )
        self._commit()
        return deleted

    def delete_shares(self, file_ids: Iterable[int], owner_id: str) -> int:
        ids = list(file_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(FileShare)
            .filter(FileShare.file_id.in_(ids), FileShare.owner_id == owner_id)
            .delete(synchronize_session="fetch")
        )
        self._commit()
        return deleted

    def delete_shares_for_files(self, file_ids: Iterable[int]) -> int:
        """
        Drop every share pointing at the given files, whoever issued it.
        Used right before the file rows themselves go away.
        """
        ids = list(file_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(FileShare)
            .filter(FileShare.file_id.in_(ids))
            .delete(synchronize_session="fetch")
        )
        self._commit()
        return deleted
