from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel

from drive_api.schemas.file import FileRead


class FolderBase(BaseModel):
    name: str
    parent_id: Optional[int] = None


class FolderCreate(BaseModel):
    name: str
    parent_id: int


class FolderRename(BaseModel):
    name: str


class FolderMove(BaseModel):
    parent_id: int


class FolderRead(FolderBase):
    id: int
    position: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderWithSizeRead(FolderRead):
    size: int


class FolderContentsRead(BaseModel):
    folder: FolderRead
    folders: List[FolderWithSizeRead]
    files: List[FileRead]
    parents: List[FolderRead]
    root_folder_id: Optional[int] = None
    shares: Dict[int, str] = {}

    class Config:
        from_attributes = True


class FolderSizeRead(BaseModel):
    folder_id: int
    size: int


class DeleteSummaryRead(BaseModel):
    folders_deleted: int
    files_deleted: int

    class Config:
        from_attributes = True
