from typing import List, Literal

from pydantic import BaseModel


class ReorderItem(BaseModel):
    id: int
    kind: Literal["file", "folder"]
    new_position: int


class ReorderRequest(BaseModel):
    items: List[ReorderItem]


class ReorderResult(BaseModel):
    requested: int
    applied: int
