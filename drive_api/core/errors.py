"""
Error taxonomy for tree operations.

Every error is an HTTPException so services can raise it directly and
FastAPI renders it as {"detail": ...} with the matching status code.
"""
from typing import Optional

from fastapi import HTTPException, status


class DriveError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Drive operation failed"
    headers: Optional[dict] = None

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=type(self).headers,
        )


class Unauthorized(DriveError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(DriveError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have access to this item"


class NotFound(DriveError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidArgument(DriveError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid argument"


class CorruptTree(DriveError):
    # cycle, dangling parent link or depth past MAX_TREE_DEPTH
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Folder tree is corrupt"


class UpstreamFailure(DriveError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Blob store request failed"
