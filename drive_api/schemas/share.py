from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ShareLinkRead(BaseModel):
    file_id: int
    token: str
    share_path: str
    download_path: str


class ShareRead(BaseModel):
    file_id: int
    token: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SharedFileRead(BaseModel):
    # no url: shared bytes are only served through /download/{token}
    name: str
    size: int
    created_at: Optional[datetime] = None
    download_path: str
