"""Tests for recursive folder sizes."""

import pytest
from sqlalchemy import event

from drive_api.core.errors import CorruptTree
from drive_api.services.aggregation import FolderSizes
from tests.fakes import OTHER_OWNER, OWNER


@pytest.fixture
def sizes(store):
    return FolderSizes(store, max_depth=16)


@pytest.fixture
def statements(engine):
    """Collects every SQL statement the engine executes.

    Yields:
        List that fills up as statements run.
    """
    executed = []

    def record(conn, cursor, statement, parameters, context, executemany):
        executed.append(statement)

    event.listen(engine, 'before_cursor_execute', record)
    yield executed
    event.remove(engine, 'before_cursor_execute', record)


def add_file(store, folder, name, size, owner=OWNER):
    return store.insert_file(name, size, f'https://blobs.test/f/{name}', folder.id, owner, 1)


def test_nested_sizes_add_up(store, sizes, root):
    """100 bytes one level down and 250 two levels down make 350."""
    parent = store.insert_folder('parent', root.id, OWNER, 4)
    child = store.insert_folder('child', parent.id, OWNER, 1)
    grandchild = store.insert_folder('grandchild', child.id, OWNER, 1)
    add_file(store, child, 'a.bin', 100)
    add_file(store, grandchild, 'b.bin', 250)

    assert sizes.folder_size(parent.id, OWNER) == 350
    assert sizes.folder_size(child.id, OWNER) == 350
    assert sizes.folder_size(grandchild.id, OWNER) == 250


def test_empty_folder_is_zero(store, sizes, root):
    """A folder without files weighs nothing."""
    empty = store.insert_folder('empty', root.id, OWNER, 4)

    assert sizes.folder_size(empty.id, OWNER) == 0


def test_foreign_files_not_counted(store, sizes, root):
    """Only the owner's files count towards the owner's sizes."""
    folder = store.insert_folder('mine', root.id, OWNER, 4)
    add_file(store, folder, 'mine.bin', 10)
    add_file(store, folder, 'theirs.bin', 1000, owner=OTHER_OWNER)

    assert sizes.folder_size(folder.id, OWNER) == 10


def test_sibling_sizes_in_one_pass(store, sizes, root):
    """Several sibling subtrees are sized together, each on its own."""
    left = store.insert_folder('left', root.id, OWNER, 4)
    right = store.insert_folder('right', root.id, OWNER, 5)
    left_inner = store.insert_folder('inner', left.id, OWNER, 1)
    add_file(store, left, 'l.bin', 1)
    add_file(store, left_inner, 'li.bin', 2)
    add_file(store, right, 'r.bin', 40)

    result = sizes.folder_sizes([left.id, right.id], OWNER)

    assert result == {left.id: 3, right.id: 40}


def test_one_query_pair_per_level(store, sizes, root, statements):
    """Query count follows depth, not the number of folders."""
    parent = store.insert_folder('parent', root.id, OWNER, 4)
    for index in range(10):
        child = store.insert_folder(f'child-{index}', parent.id, OWNER, index)
        add_file(store, child, f'{index}-a.bin', 5)
        add_file(store, child, f'{index}-b.bin', 5)
    parent_id = parent.id
    statements.clear()

    total = sizes.folder_size(parent_id, OWNER)

    assert total == 100
    assert len(statements) == 4


def test_cycle_is_corrupt(store, sizes, root):
    """Sizing a looped subtree fails instead of spinning."""
    a = store.insert_folder('a', root.id, OWNER, 4)
    b = store.insert_folder('b', a.id, OWNER, 1)
    store.update_parent('folder', a.id, OWNER, b.id, 1)

    with pytest.raises(CorruptTree):
        sizes.folder_size(a.id, OWNER)


def test_depth_limit(store, root):
    """Trees deeper than the limit are treated as corrupt."""
    parent = root
    for level in range(4):
        parent = store.insert_folder(f'level-{level}', parent.id, OWNER, 1)

    with pytest.raises(CorruptTree):
        FolderSizes(store, max_depth=2).folder_size(root.id, OWNER)
