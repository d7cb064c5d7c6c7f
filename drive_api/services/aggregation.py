import logging
from typing import Dict, Iterable

from drive_api.core.errors import CorruptTree
from drive_api.services.tree_store import TreeStore

logger = logging.getLogger(__name__)


class FolderSizes:
    """
    Recursive folder sizes, computed on read.

    Subtrees are walked one level at a time: each level costs one query
    for child folders and one grouped SUM over direct files, however many
    folders sit on that level. Nothing is cached between calls.
    """

    def __init__(self, store: TreeStore, max_depth: int = 64):
        self.store = store
        self.max_depth = max_depth

    def folder_size(self, folder_id: int, owner_id: str) -> int:
        return self.folder_sizes([folder_id], owner_id)[folder_id]

    def folder_sizes(self, folder_ids: Iterable[int], owner_id: str) -> Dict[int, int]:
        """
        Map each requested folder id to the total size in bytes of every
        file below it. The requested folders must be disjoint subtrees
        (siblings, typically).
        """
        sizes: Dict[int, int] = {}
        # folder id -> requested folder whose subtree it belongs to
        origin: Dict[int, int] = {}
        for folder_id in folder_ids:
            sizes[folder_id] = 0
            origin[folder_id] = folder_id

        frontier = list(sizes)
        depth = 0

        while frontier:
            if depth >= self.max_depth:
                raise CorruptTree(f"Folder tree deeper than {self.max_depth} levels")

            for parent_id, total in self.store.file_size_totals(frontier, owner_id).items():
                sizes[origin[parent_id]] += total

            next_frontier = []
            for child in self.store.child_folders(frontier, owner_id):
                if child.id in origin:
                    raise CorruptTree(f"Folder {child.id} is reachable twice (cycle)")
                origin[child.id] = origin[child.parent_id]
                next_frontier.append(child.id)

            frontier = next_frontier
            depth += 1

        logger.debug("Computed sizes for %d folder(s) over %d level(s)", len(sizes), depth)
        return sizes
