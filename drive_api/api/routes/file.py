import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile, status

from drive_api.api.deps import get_tree_ops
from drive_api.api.routes.auth import get_current_owner
from drive_api.core.config import settings
from drive_api.core.errors import Forbidden
from drive_api.schemas.file import FileMove, FileRead, FileRename, UploadCompletion
from drive_api.schemas.share import ShareLinkRead, ShareRead
from drive_api.services.tree_ops import TreeOperations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/upload", response_model=FileRead, status_code=status.HTTP_201_CREATED)
def upload_file(
    folder_id: int,
    file: UploadFile = File(...),
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    data = file.file.read()
    return ops.upload_file(file.filename or "", data, folder_id, owner_id)


@router.post("/complete", response_model=FileRead, status_code=status.HTTP_201_CREATED)
def complete_upload(
    payload: UploadCompletion,
    x_upload_secret: Optional[str] = Header(default=None),
    ops: TreeOperations = Depends(get_tree_ops),
):
    """
    Callback from the blob store once an authorized upload has landed.
    """
    expected = settings.UPLOAD_CALLBACK_SECRET
    if not expected or not x_upload_secret or not secrets.compare_digest(
        x_upload_secret, expected
    ):
        logger.warning("Rejected upload callback for folder %d", payload.parent_folder_id)
        raise Forbidden("Invalid upload callback secret")

    return ops.complete_upload(
        payload.name,
        payload.size,
        payload.url,
        payload.parent_folder_id,
        payload.owner_id,
    )


@router.get("/shared", response_model=List[ShareRead])
def list_shared_files(
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.list_shares(owner_id)


@router.patch("/{file_id}/rename", response_model=FileRead)
def rename_file(
    file_id: int,
    payload: FileRename,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.rename_file(file_id, owner_id, payload.name)


@router.patch("/{file_id}/move", response_model=FileRead)
def move_file(
    file_id: int,
    payload: FileMove,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    return ops.move_file(file_id, payload.parent_id, owner_id)


@router.delete("/delete/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    ops.delete_file(file_id, owner_id)
    return None


@router.post("/{file_id}/share", response_model=ShareLinkRead)
def create_share_link(
    file_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    token = ops.create_file_share_link(file_id, owner_id)
    return ShareLinkRead(
        file_id=file_id,
        token=token,
        share_path=f"/share/{token}",
        download_path=f"/download/{token}",
    )


@router.delete("/{file_id}/share")
def revoke_share_link(
    file_id: int,
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    revoked = ops.revoke_file_share_link(file_id, owner_id)
    return {"file_id": file_id, "revoked": revoked}
