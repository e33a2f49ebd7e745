import asyncio
import logging
import os

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from pitch_coach.auth import get_current_user
from pitch_coach.database import get_async_conn
from pitch_coach.models import User
from pitch_coach.queries.project_slides import get_project_slides, replace_project_slides
from pitch_coach.queries.projects import update_project
from pitch_coach.routes.common import file_extension, get_owned_project_or_404, read_upload
from pitch_coach.services.slides import SUPPORTED_EXTENSIONS, SlideService
from pitch_coach.services.storage import DECK_BUCKET, StorageService, deck_object_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["slides"])


class ExtractRequest(BaseModel):
    project_id: str | None = None


@router.post("/slides/upload")
async def upload_slides(
    file: UploadFile | None = File(default=None),
    project_id: str | None = Form(default=None),
    user: User = Depends(get_current_user),
) -> dict:
    """Store a PDF or PPTX deck for a project."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    if not project_id:
        raise HTTPException(status_code=400, detail="Project ID is required")

    filename = file.filename or "upload"
    if f".{file_extension(filename)}" not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PDF and PPTX files are supported.",
        )

    conn = await get_async_conn()
    try:
        project = await get_owned_project_or_404(conn, project_id, user)
        data = await read_upload(file)

        path = await StorageService.upload(
            DECK_BUCKET, deck_object_path(user.id, project_id, filename), data, upsert=True
        )
        # A new name leaves the previous deck behind
        if project.slide_deck_path and project.slide_deck_path != path:
            StorageService.remove(DECK_BUCKET, project.slide_deck_path)
        await update_project(conn, project_id, {"slide_deck_path": path})

        return {
            "success": True,
            "file_path": path,
            "file_name": filename,
            "file_size": len(data),
            "project_id": project_id,
        }
    finally:
        await conn.close()


@router.post("/slides/extract")
async def extract_slides(body: ExtractRequest, user: User = Depends(get_current_user)) -> dict:
    """Parse the project's stored deck and replace its slide rows."""
    if not body.project_id:
        raise HTTPException(status_code=400, detail="Project ID is required")

    conn = await get_async_conn()
    try:
        project = await get_owned_project_or_404(conn, body.project_id, user)
        if not project.slide_deck_path:
            raise HTTPException(
                status_code=400, detail="No slide deck uploaded for this project"
            )
        try:
            data = await StorageService.download(DECK_BUCKET, project.slide_deck_path)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="Slide deck file not found")

        # Parsing is CPU-bound; offload to the thread pool
        try:
            slides = await asyncio.to_thread(
                SlideService.extract, data, os.path.basename(project.slide_deck_path)
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        await replace_project_slides(conn, body.project_id, slides)
        return {"success": True, "slides": slides, "slide_count": len(slides)}
    finally:
        await conn.close()


@router.get("/projects/{project_id}/slides")
async def list_slides(project_id: str, user: User = Depends(get_current_user)) -> dict:
    conn = await get_async_conn()
    try:
        await get_owned_project_or_404(conn, project_id, user)
        slides = await get_project_slides(conn, project_id)
        return {"slides": [s.to_dict() for s in slides]}
    finally:
        await conn.close()
