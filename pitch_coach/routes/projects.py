import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from pitch_coach.auth import get_current_user
from pitch_coach.database import get_async_conn
from pitch_coach.errors import TranscriptionError
from pitch_coach.models import User
from pitch_coach.queries import projects as project_queries
from pitch_coach.queries.audio_sessions import list_audio_sessions
from pitch_coach.routes.common import clean, get_owned_project_or_404, read_upload
from pitch_coach.services.progress import build_progress
from pitch_coach.services.storage import DECK_BUCKET, StorageService
from pitch_coach.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["projects"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class ProjectCreate(BaseModel):
    name: str = ""
    project_type: str | None = None
    description: str | None = None
    default_audience: str | None = None
    default_goal: str | None = None
    default_duration: str | None = None
    default_scenario: str | None = None


class ProjectUpdate(BaseModel):
    name: str | None = None
    project_type: str | None = None
    description: str | None = None
    default_audience: str | None = None
    default_goal: str | None = None
    default_duration: str | None = None
    default_scenario: str | None = None


class ContextFields(BaseModel):
    audience: str | None = None
    goal: str | None = None
    duration: str | None = None
    scenario: str | None = None
    english_level: str | None = None
    tone_style: str | None = None
    constraints: str | None = None
    additional_notes: str | None = None
    context_transcript: str | None = None
    transcription_language: str | None = None


class ContextUpdate(BaseModel):
    project_id: str | None = None
    context: ContextFields | None = None


# ------------------------------------------------------------------
# Project CRUD
# ------------------------------------------------------------------


@router.get("/projects")
async def list_projects(user: User = Depends(get_current_user)) -> dict:
    conn = await get_async_conn()
    try:
        projects = await project_queries.list_projects(conn, user.id)
        return {"projects": [p.to_dict() for p in projects]}
    finally:
        await conn.close()


@router.post("/projects")
async def create_project(body: ProjectCreate, user: User = Depends(get_current_user)) -> dict:
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Project name is required")

    values = {field: clean(value) for field, value in body.model_dump().items()}
    values["name"] = name

    conn = await get_async_conn()
    try:
        project = await project_queries.create_project(conn, user.id, values)
        logger.info("Created project %s for user %s", project.id, user.id)
        return {"project": project.to_dict()}
    finally:
        await conn.close()


@router.get("/projects/{project_id}")
async def get_project(project_id: str, user: User = Depends(get_current_user)) -> dict:
    conn = await get_async_conn()
    try:
        project = await get_owned_project_or_404(conn, project_id, user)
        return {"project": project.to_dict()}
    finally:
        await conn.close()


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: str, body: ProjectUpdate, user: User = Depends(get_current_user)
) -> dict:
    # Only string fields the client actually sent are applied.
    updates = {
        field: clean(value)
        for field, value in body.model_dump(exclude_unset=True).items()
        if isinstance(value, str)
    }
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    if "name" in updates and not updates["name"]:
        raise HTTPException(status_code=400, detail="Project name cannot be empty")

    conn = await get_async_conn()
    try:
        await get_owned_project_or_404(conn, project_id, user)
        project = await project_queries.update_project(conn, project_id, updates)
        return {"project": project.to_dict()}
    finally:
        await conn.close()


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user: User = Depends(get_current_user)) -> dict:
    conn = await get_async_conn()
    try:
        project = await get_owned_project_or_404(conn, project_id, user)
        await project_queries.delete_project(conn, project_id)
    finally:
        await conn.close()

    if project.slide_deck_path:
        StorageService.remove(DECK_BUCKET, project.slide_deck_path)
    logger.info("Deleted project %s", project_id)
    return {"success": True}


@router.get("/projects/{project_id}/progress")
async def get_progress(project_id: str, user: User = Depends(get_current_user)) -> dict:
    """Score trend across the project's analyzed pitch attempts."""
    conn = await get_async_conn()
    try:
        await get_owned_project_or_404(conn, project_id, user)
        sessions = await list_audio_sessions(conn, user.id, "pitch", project_id)
    finally:
        await conn.close()
    return {"project_id": project_id, "attempts": build_progress(sessions)}


# ------------------------------------------------------------------
# Coaching context
# ------------------------------------------------------------------


@router.post("/project/update-context")
async def update_context(body: ContextUpdate, user: User = Depends(get_current_user)) -> dict:
    """Save the reusable coaching context on a project."""
    if not body.project_id:
        raise HTTPException(status_code=400, detail="Project ID is required")
    if body.context is None:
        raise HTTPException(status_code=400, detail="Context is required")

    ctx = body.context
    updates = {
        "default_audience": clean(ctx.audience),
        "default_goal": clean(ctx.goal),
        "default_duration": clean(ctx.duration),
        "default_scenario": clean(ctx.scenario),
        "english_level": clean(ctx.english_level),
        "tone_style": clean(ctx.tone_style),
        "constraints": clean(ctx.constraints),
        "additional_notes": clean(ctx.additional_notes),
        "context_transcript": clean(ctx.context_transcript),
        "transcription_language": clean(ctx.transcription_language),
    }

    conn = await get_async_conn()
    try:
        await get_owned_project_or_404(conn, body.project_id, user)
        await project_queries.update_project(conn, body.project_id, updates)
    finally:
        await conn.close()
    return {"success": True, "project_id": body.project_id}


@router.post("/project/transcribe-context")
async def transcribe_context(
    audio: UploadFile | None = File(default=None),
    project_id: str | None = Form(default=None),
    user: User = Depends(get_current_user),
) -> dict:
    """Transcribe a spoken description of the audience/goal into the project."""
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")
    if not project_id:
        raise HTTPException(status_code=400, detail="Project ID is required")

    conn = await get_async_conn()
    try:
        project = await get_owned_project_or_404(conn, project_id, user)
        data = await read_upload(audio)

        try:
            transcript = await TranscriptionService().transcribe(
                data,
                audio.filename or "context.webm",
                content_type=audio.content_type or "audio/webm",
                language=project.transcription_language,
            )
        except TranscriptionError as e:
            logger.error("Context transcription failed for project %s: %s", project_id, e)
            raise HTTPException(status_code=500, detail=f"Transcription failed: {e}")

        await project_queries.update_project(
            conn, project_id, {"context_transcript": transcript}
        )
        return {"transcript": transcript, "project_id": project_id}
    finally:
        await conn.close()
