"""Signed file download — the token in the URL is the authorization."""

import mimetypes

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from palmtrack.services.storage import get_storage

router = APIRouter()


@router.get("/{token}")
async def download_file(token: str):
    storage = get_storage()
    key = storage.resolve_signed(token)
    if not key or not storage.exists(key):
        raise HTTPException(status_code=404, detail="File not found or link expired")
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return FileResponse(storage.open_path(key), media_type=media_type)
