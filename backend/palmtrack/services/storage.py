"""Local-disk file storage for agent photos.

Files live under settings.storage_dir, addressed by a relative key such
as "agents/<agent_id>/<uuid>.jpg".  Files are never served by key; a
viewer gets a time-limited signed URL whose token names the key.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.jwt import create_signed_path_token, decode_token
from palmtrack.config import settings
from palmtrack.middleware.exceptions import BusinessLogicError

logger = logging.getLogger(__name__)

PHOTO_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
MAX_PHOTO_BYTES = 5 * 1024 * 1024


class LocalStorage:
    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise BusinessLogicError("Invalid storage key", error_code="INVALID_STORAGE_KEY")
        return path

    def save(self, key: str, data: bytes) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".part")
        tmp.write_bytes(data)
        os.replace(tmp, path)
        return key

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            logger.warning("Stored file already missing: %s", key)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def open_path(self, key: str) -> Path:
        return self._path(key)

    def signed_url(self, key: str, expires_in: int | None = None) -> str:
        expires_in = expires_in or settings.signed_url_expire_seconds
        return f"/api/files/{create_signed_path_token(key, expires_in)}"

    def resolve_signed(self, token: str) -> str | None:
        """Storage key named by a valid, unexpired signed token."""
        payload = decode_token(token)
        if payload.get("type") != "file":
            return None
        return payload.get("path")


def get_storage() -> LocalStorage:
    return LocalStorage(settings.storage_dir)


def photo_key(agent_id: str, content_type: str) -> str:
    ext = PHOTO_CONTENT_TYPES.get(content_type)
    if ext is None:
        raise BusinessLogicError(
            "Photo must be a JPEG, PNG or WebP image", error_code="UNSUPPORTED_MEDIA"
        )
    return f"agents/{agent_id}/{uuid.uuid4().hex}{ext}"


def check_photo_size(data: bytes) -> None:
    if not data:
        raise BusinessLogicError("Uploaded photo is empty", error_code="EMPTY_UPLOAD")
    if len(data) > MAX_PHOTO_BYTES:
        raise BusinessLogicError("Photo exceeds 5 MB", error_code="UPLOAD_TOO_LARGE")


async def read_photo(upload) -> bytes:
    """Read an uploaded photo, never buffering more than one byte past the limit."""
    data = await upload.read(MAX_PHOTO_BYTES + 1)
    check_photo_size(data)
    return data


# ── Transaction-bound file changes ───────────────────────────
# Stored files are not part of the database transaction.  These hooks
# tie a file change to the outcome of the request's commit.

def delete_after_commit(db: AsyncSession, key: str) -> None:
    """Delete `key` once the session commits; keep it if the commit fails."""
    event.listen(
        db.sync_session, "after_commit", lambda session: get_storage().delete(key), once=True
    )


def delete_after_rollback(db: AsyncSession, key: str) -> None:
    """Delete a freshly saved `key` if the session rolls back."""
    event.listen(
        db.sync_session, "after_rollback", lambda session: get_storage().delete(key), once=True
    )
