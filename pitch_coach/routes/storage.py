import mimetypes

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from pitch_coach.errors import StorageError
from pitch_coach.services.storage import StorageService

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
async def download_signed(bucket: str, path: str, expires: int, signature: str) -> FileResponse:
    """Serve a private object to whoever holds a valid signed URL."""
    if not StorageService.verify_signature(bucket, path, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    try:
        full = StorageService.object_path(bucket, path)
    except StorageError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not StorageService.exists(bucket, path):
        raise HTTPException(status_code=404, detail="Object not found")
    media_type, _ = mimetypes.guess_type(full)
    return FileResponse(full, media_type=media_type or "application/octet-stream")
