from typing import List

from fastapi import APIRouter, Depends, status

from drive_api.api.deps import get_tree_ops
from drive_api.api.routes.auth import get_current_owner
from drive_api.schemas.folder import (
    DeleteSummaryRead,
    FolderContentsRead,
    FolderCreate,
    FolderMove,
    FolderRead,
    FolderRename,
    FolderSizeRead,
)
from drive_api.schemas.item import ReorderRequest, ReorderResult
from drive_api.services.tree_ops import TreeOperations

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("/root", response_model=FolderRead)
def read_root_folder(
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.get_root(owner_id)


@router.get("/{folder_id}", response_model=FolderContentsRead)
def read_folder(
    folder_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    contents = ops.get_folder_contents(folder_id, owner_id)
    return FolderContentsRead.model_validate(contents, from_attributes=True)


@router.get("/{folder_id}/ancestors", response_model=List[FolderRead])
def read_ancestors(
    folder_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.get_ancestors(folder_id, owner_id)


@router.get("/{folder_id}/size", response_model=FolderSizeRead)
def read_folder_size(
    folder_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return FolderSizeRead(folder_id=folder_id, size=ops.get_folder_size(folder_id, owner_id))


@router.post("/create", response_model=FolderRead, status_code=status.HTTP_201_CREATED)
def create_folder(
    payload: FolderCreate,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.create_folder(payload.name, payload.parent_id, owner_id)


@router.patch("/{folder_id}/rename", response_model=FolderRead)
def rename_folder(
    folder_id: int,
    payload: FolderRename,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.rename_folder(folder_id, owner_id, payload.name)


@router.patch("/{folder_id}/move", response_model=FolderRead)
def move_folder(
    folder_id: int,
    payload: FolderMove,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.move_folder(folder_id, payload.parent_id, owner_id)


@router.delete("/delete/{folder_id}", response_model=DeleteSummaryRead)
def delete_folder(
    folder_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    # subtree removal is not atomic: on failure re-read the listing and retry
    summary = ops.delete_folder(folder_id, owner_id)
    return DeleteSummaryRead.model_validate(summary, from_attributes=True)


@router.post("/reorder", response_model=ReorderResult)
def reorder_items(
    payload: ReorderRequest,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    applied = ops.reorder_items(payload.items, owner_id)
    return ReorderResult(requested=len(payload.items), applied=applied)
