from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from drive_api.api.deps import get_share_resolver
from drive_api.schemas.share import SharedFileRead
from drive_api.services.share_resolver import ShareResolver

# no identity gate here: the token is the authorization
router = APIRouter(tags=["share"])


def content_disposition(filename: str) -> str:
    """
    Attachment header that survives any file name: an ASCII fallback with
    quotes and backslashes escaped, plus the UTF-8 form from RFC 5987 when
    the name needs it.
    """
    fallback = "".join(
        c if c.isascii() and c.isprintable() else "_" for c in filename
    )
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    header = f'attachment; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return header


@router.get("/share/{token}", response_model=SharedFileRead)
def read_shared_file(
    token: str,
    resolver: ShareResolver = Depends(get_share_resolver),
):
    file = resolver.resolve(token)
    return SharedFileRead(
        name=file.name,
        size=file.size,
        created_at=file.created_at,
        download_path=f"/download/{token}",
    )


@router.get("/download/{token}")
def download_shared_file(
    token: str,
    resolver: ShareResolver = Depends(get_share_resolver),
):
    file, stream = resolver.open_download(token)

    media_type = stream.headers.get("content-type", "application/octet-stream")
    headers = {
        "Content-Disposition": content_disposition(file.name),
        "Content-Length": str(file.size),
    }

    return StreamingResponse(
        stream.iter_bytes(),
        media_type=media_type,
        headers=headers,
        background=BackgroundTask(stream.close),
    )
