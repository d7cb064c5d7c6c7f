import logging
import os
import re
import uuid
from pathlib import Path
import mimetypes
from typing import List

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import FileResponse
from pydantic import BaseModel

import aiofiles

logger = logging.getLogger(__name__)

app = FastAPI(title="Blob Node")

BLOB_DIR = Path(os.getenv("BLOB_DIR", "/data/blobs"))
BLOB_PUBLIC_URL = os.getenv("BLOB_PUBLIC_URL", "http://localhost:9001")

KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class DeleteRequest(BaseModel):
    keys: List[str]


class RenameRequest(BaseModel):
    name: str


def _blob_path(key: str) -> Path:
    # keys are generated here; anything else never touches the filesystem
    if not KEY_PATTERN.match(key):
        raise HTTPException(status_code=404, detail="Blob not found")
    return BLOB_DIR / key


def _name_path(key: str) -> Path:
    return _blob_path(key).with_suffix(".name")


def _public_url(key: str) -> str:
    return f"{BLOB_PUBLIC_URL.rstrip('/')}/f/{key}"


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.put("/blobs/{name}", status_code=status.HTTP_201_CREATED)
async def put_blob(name: str, request: Request):
    """
    Store raw request body under a fresh key.
    """
    key = uuid.uuid4().hex
    dest = _blob_path(key)
    dest.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(dest, "wb") as f:
        async for chunk in request.stream():
            await f.write(chunk)

    async with aiofiles.open(_name_path(key), "w") as f:
        await f.write(name)

    logger.info("Stored blob %s as %s", name, key)
    return {"key": key, "url": _public_url(key)}


@app.post("/blobs/delete")
async def delete_blobs(payload: DeleteRequest):
    """
    Delete a batch of blobs. Unknown keys are ignored so retries are safe.
    """
    deleted = 0
    for key in payload.keys:
        if not KEY_PATTERN.match(key):
            continue
        path = _blob_path(key)
        if path.exists():
            path.unlink()
            deleted += 1
        _name_path(key).unlink(missing_ok=True)

    logger.info("Deleted %d of %d blob(s)", deleted, len(payload.keys))
    return {"deleted": deleted}


@app.post("/blobs/{key}/rename")
async def rename_blob(key: str, payload: RenameRequest):
    path = _blob_path(key)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Blob not found")

    async with aiofiles.open(_name_path(key), "w") as f:
        await f.write(payload.name)

    return {"key": key, "url": _public_url(key)}


@app.get("/f/{key}")
async def get_blob(key: str):
    """
    Stream the stored blob back.
    """
    path = _blob_path(key)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Blob not found")

    name = key
    name_path = _name_path(key)
    if name_path.exists():
        async with aiofiles.open(name_path, "r") as f:
            name = await f.read()

    # Guess MIME type from the blob's current name (pdf, docx, jpg, png, mp4, etc.)
    mime_type, _ = mimetypes.guess_type(name)
    # Fallback to generic binary stream if unknown
    media_type = mime_type or "application/octet-stream"

    return FileResponse(path, media_type=media_type)
