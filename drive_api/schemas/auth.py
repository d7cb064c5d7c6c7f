from typing import Optional

from pydantic import BaseModel


class OwnerRead(BaseModel):
    owner_id: str
    root_folder_id: Optional[int] = None
