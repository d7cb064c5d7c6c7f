from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FileRead(BaseModel):
    id: int
    name: str
    size: int
    url: str
    parent_id: int
    position: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FileRename(BaseModel):
    name: str


class FileMove(BaseModel):
    parent_id: int


class UploadCompletion(BaseModel):
    """
    Body of the callback the blob store sends once bytes are stored.
    """
    name: str
    size: int = Field(ge=0)
    url: str
    parent_folder_id: int
    owner_id: str
