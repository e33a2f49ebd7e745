import os

import aiosqlite
from fastapi import HTTPException, UploadFile

from pitch_coach.config import settings
from pitch_coach.models import AudioSession, Project, User
from pitch_coach.queries.audio_sessions import get_audio_session
from pitch_coach.queries.projects import get_project

# ------------------------------------------------------------------
# Ownership helpers shared by the routers
# ------------------------------------------------------------------


async def get_owned_project_or_404(
    conn: aiosqlite.Connection, project_id: str, user: User
) -> Project:
    """Projects of other users are reported as missing, not forbidden."""
    project = await get_project(conn, project_id)
    if project is None or project.user_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def get_owned_session_or_403(
    conn: aiosqlite.Connection, session_id: str, user: User
) -> AudioSession:
    session = await get_audio_session(conn, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Audio session not found")
    if session.user_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return session


# ------------------------------------------------------------------
# Form / upload helpers
# ------------------------------------------------------------------


def clean(value) -> str | None:
    """Trim strings; empty strings become ``None``."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def file_extension(filename: str | None, default: str = "") -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    return ext or default


async def read_upload(file: UploadFile) -> bytes:
    """Read at most one byte past the limit so oversized uploads stay bounded."""
    data = await file.read(settings.max_upload_bytes + 1)
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large (limit {settings.max_upload_bytes} bytes)",
        )
    return data
