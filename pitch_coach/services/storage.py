import hashlib
import hmac
import os
import re
import time
from urllib.parse import quote

import aiofiles

from pitch_coach.config import settings
from pitch_coach.errors import StorageError

AUDIO_BUCKET = "audio-recordings"
DECK_BUCKET = "project-decks"
BUCKETS = (AUDIO_BUCKET, DECK_BUCKET)


def sanitize_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9.-]`` with an underscore."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def audio_object_path(user_id: str, session_id: str, ext: str) -> str:
    return f"{user_id}/{session_id}/original.{ext}"


def deck_object_path(user_id: str, project_id: str, filename: str) -> str:
    return f"{user_id}/{project_id}/{sanitize_filename(filename)}"


class StorageService:
    """Bucketed object store on the local filesystem.

    Objects live at ``<storage_root>/<bucket>/<path>``.  Private objects are
    shared through expiring HMAC-signed URLs served by ``routes/storage.py``.
    """

    @staticmethod
    def object_path(bucket: str, path: str) -> str:
        """Resolve *path* inside *bucket*, refusing anything that escapes it."""
        if bucket not in BUCKETS:
            raise StorageError(f"Bucket '{bucket}' not found")
        root = os.path.realpath(os.path.join(settings.storage_root, bucket))
        full = os.path.realpath(os.path.join(root, path))
        if not path or os.path.isabs(path) or not full.startswith(root + os.sep):
            raise StorageError(f"Invalid object path: {path!r}")
        return full

    @staticmethod
    async def upload(bucket: str, path: str, data: bytes, *, upsert: bool = False) -> str:
        full = StorageService.object_path(bucket, path)
        if os.path.exists(full) and not upsert:
            raise StorageError(f"Object already exists: {bucket}/{path}")
        os.makedirs(os.path.dirname(full), exist_ok=True)
        async with aiofiles.open(full, "wb") as f:
            await f.write(data)
        return path

    @staticmethod
    async def download(bucket: str, path: str) -> bytes:
        full = StorageService.object_path(bucket, path)
        if not os.path.exists(full):
            raise FileNotFoundError(f"Object not found: {bucket}/{path}")
        async with aiofiles.open(full, "rb") as f:
            return await f.read()

    @staticmethod
    def exists(bucket: str, path: str) -> bool:
        return os.path.exists(StorageService.object_path(bucket, path))

    @staticmethod
    def remove(bucket: str, path: str) -> None:
        full = StorageService.object_path(bucket, path)
        if os.path.exists(full):
            os.remove(full)

    # ------------------------------------------------------------------
    # Signed URLs
    # ------------------------------------------------------------------

    @staticmethod
    def _signature(bucket: str, path: str, expires: int) -> str:
        message = f"{bucket}/{path}:{expires}".encode()
        return hmac.new(
            settings.signing_secret.encode(), message, hashlib.sha256
        ).hexdigest()

    @staticmethod
    def create_signed_url(bucket: str, path: str, expires_in: int | None = None) -> str:
        """Return a relative URL granting read access until it expires."""
        StorageService.object_path(bucket, path)
        ttl = expires_in if expires_in is not None else settings.signed_url_ttl_seconds
        expires = int(time.time()) + ttl
        signature = StorageService._signature(bucket, path, expires)
        return (
            f"/api/storage/{bucket}/{quote(path)}"
            f"?expires={expires}&signature={signature}"
        )

    @staticmethod
    def verify_signature(bucket: str, path: str, expires: int, signature: str) -> bool:
        if expires < int(time.time()):
            return False
        expected = StorageService._signature(bucket, path, expires)
        return hmac.compare_digest(expected, signature)
