from typing import Optional

from fastapi import APIRouter, Depends, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from drive_api.api.deps import get_tree_ops
from drive_api.core.errors import Unauthorized
from drive_api.core.security import decode_access_token
from drive_api.schemas.auth import OwnerRead
from drive_api.services.tree_ops import TreeOperations

router = APIRouter(prefix="/auth", tags=["auth"])

# tokens are issued by the identity provider; we only verify them
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Resolve the bearer token into the caller's owner id.
    """
    if credentials is None:
        raise Unauthorized()

    owner_id = decode_access_token(credentials.credentials)
    if owner_id is None:
        raise Unauthorized()
    return owner_id


@router.post("/onboard", response_model=OwnerRead, status_code=status.HTTP_201_CREATED)
def onboard(
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    root = ops.onboard_user(owner_id)
    return OwnerRead(owner_id=owner_id, root_folder_id=root.id)


@router.get("/me", response_model=OwnerRead)
def read_me(
    owner_id: str = Depends(get_current_owner),
    ops: TreeOperations = Depends(get_tree_ops),
):
    root = ops.find_root(owner_id)
    return OwnerRead(owner_id=owner_id, root_folder_id=root.id if root else None)
