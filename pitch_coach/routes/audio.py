import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel

from pitch_coach.auth import get_current_user
from pitch_coach.config import settings
from pitch_coach.database import get_async_conn
from pitch_coach.errors import GenerationError, TranscriptionError
from pitch_coach.models import SESSION_TYPES, User
from pitch_coach.queries import audio_sessions as session_queries
from pitch_coach.routes.common import (
    file_extension,
    get_owned_project_or_404,
    get_owned_session_or_403,
    read_upload,
)
from pitch_coach.services.analysis import AnalysisService, extract_scores
from pitch_coach.services.context import combine_context
from pitch_coach.services.storage import (
    AUDIO_BUCKET,
    StorageService,
    audio_object_path,
)
from pitch_coach.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audio", tags=["audio"])

DIRECT_TRANSCRIPT_PATH = "direct-transcript"


class AnalyzeRequest(BaseModel):
    audio_session_id: str | None = None
    pitch_transcript: str | None = None
    context: dict | None = None
    project_id: str | None = None
    attempt_number: int | None = None


# ------------------------------------------------------------------
# Upload + transcription
# ------------------------------------------------------------------


@router.post("/upload-and-transcribe")
async def upload_and_transcribe(
    audio: UploadFile | None = File(default=None),
    session_type: str | None = Form(default=None, alias="type"),
    project_id: str | None = Form(default=None),
    user: User = Depends(get_current_user),
) -> dict:
    """Store an audio recording, create its session and transcribe it.

    A transcription failure does not fail the upload; the error text is
    stored as the transcript so the recording is not lost.
    """
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")
    if session_type not in SESSION_TYPES:
        raise HTTPException(
            status_code=400, detail='Invalid type. Must be "pitch" or "context"'
        )

    data = await read_upload(audio)
    ext = file_extension(audio.filename, default="mp3")

    conn = await get_async_conn()
    try:
        language = None
        if project_id:
            project = await get_owned_project_or_404(conn, project_id, user)
            language = project.transcription_language

        session = await session_queries.create_audio_session(
            conn, user.id, session_type, "placeholder", project_id=project_id or None
        )
        path = await StorageService.upload(
            AUDIO_BUCKET, audio_object_path(user.id, session.id, ext), data
        )
        await session_queries.update_audio_path(conn, session.id, path)

        try:
            transcript = await TranscriptionService().transcribe(
                data,
                audio.filename or f"audio.{ext}",
                content_type=audio.content_type,
                language=language,
            )
        except TranscriptionError as e:
            logger.error("Transcription failed for session %s: %s", session.id, e)
            transcript = f"[Transcription error: {e}]"

        await session_queries.update_transcript(conn, session.id, transcript)
        return {
            "audio_session_id": session.id,
            "transcript": transcript,
            "audio_path": path,
        }
    finally:
        await conn.close()


# ------------------------------------------------------------------
# Analysis
# ------------------------------------------------------------------


@router.post("/analyze")
async def analyze(body: AnalyzeRequest, user: User = Depends(get_current_user)) -> dict:
    """Generate structured feedback for a stored session or a raw transcript."""
    conn = await get_async_conn()
    try:
        session = None
        session_type = "pitch"
        project_id = body.project_id or None

        if not body.pitch_transcript and not body.audio_session_id:
            raise HTTPException(
                status_code=400,
                detail="Either audio_session_id or pitch_transcript is required",
            )

        if body.audio_session_id:
            session = await get_owned_session_or_403(conn, body.audio_session_id, user)
            session_type = session.type
            project_id = session.project_id or project_id

        if body.pitch_transcript:
            transcript = body.pitch_transcript
        elif session.transcript:
            transcript = session.transcript
        else:
            raise HTTPException(
                status_code=400,
                detail="Transcript not available. Please transcribe the audio first.",
            )

        if not transcript.strip():
            raise HTTPException(status_code=400, detail="Transcript is required")

        project = None
        if project_id:
            project = await get_owned_project_or_404(conn, project_id, user)
        combined_context = combine_context(body.context, project)

        attempt_number = None
        previous_attempts: list[dict] = []
        if session_type == "pitch" and project_id:
            previous = await session_queries.previous_analyzed_pitch_sessions(
                conn,
                project_id,
                exclude_session_id=body.audio_session_id,
                limit=settings.max_history_attempts,
            )
            earlier = await session_queries.count_analyzed_pitch_sessions(
                conn, project_id, exclude_session_id=body.audio_session_id
            )
            attempt_number = earlier + 1
            previous_attempts = [
                {
                    "attempt": earlier - len(previous) + index + 1,
                    "created_at": s.created_at,
                    "scores": extract_scores(s.analysis_json),
                }
                for index, s in enumerate(previous)
            ]
        attempt_number = body.attempt_number or attempt_number

        try:
            analysis_json = await AnalysisService().analyze(
                transcript,
                session_type,
                context=combined_context,
                project=project,
                attempt_number=attempt_number,
                previous_attempts=previous_attempts or None,
            )
        except GenerationError as e:
            logger.error("Analysis failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e))

        saved_session_id = None
        if session is not None:
            await session_queries.update_analysis(conn, session.id, analysis_json)
            saved_session_id = session.id
        elif session_type == "pitch" and project_id:
            # Keep direct-transcript analyses in the project's history
            created = await session_queries.create_audio_session(
                conn,
                user.id,
                "pitch",
                DIRECT_TRANSCRIPT_PATH,
                project_id=project_id,
                transcript=transcript,
                analysis_json=analysis_json,
            )
            saved_session_id = created.id

        return {
            "analysis_json": analysis_json,
            "combined_context": combined_context,
            "attempt_number": attempt_number,
            "session_id": saved_session_id,
        }
    finally:
        await conn.close()


# ------------------------------------------------------------------
# Session listing
# ------------------------------------------------------------------


@router.get("/sessions")
async def list_sessions(
    session_type: str | None = Query(default=None, alias="type"),
    project_id: str | None = None,
    user: User = Depends(get_current_user),
) -> dict:
    if session_type is not None and session_type not in SESSION_TYPES:
        raise HTTPException(
            status_code=400, detail='Invalid type. Must be "pitch" or "context"'
        )
    conn = await get_async_conn()
    try:
        sessions = await session_queries.list_audio_sessions(conn, user.id, session_type, project_id)
        return {"sessions": [s.to_dict() for s in sessions]}
    finally:
        await conn.close()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, user: User = Depends(get_current_user)) -> dict:
    conn = await get_async_conn()
    try:
        session = await get_owned_session_or_403(conn, session_id, user)
        return {"session": session.to_dict()}
    finally:
        await conn.close()


@router.get("/sessions/{session_id}/url")
async def get_session_audio_url(
    session_id: str, user: User = Depends(get_current_user)
) -> dict:
    """Signed, expiring URL for playing back the session's recording."""
    conn = await get_async_conn()
    try:
        session = await get_owned_session_or_403(conn, session_id, user)
    finally:
        await conn.close()

    if session.audio_path == DIRECT_TRANSCRIPT_PATH or not StorageService.exists(
        AUDIO_BUCKET, session.audio_path
    ):
        raise HTTPException(status_code=404, detail="No audio stored for this session")
    return {
        "session_id": session_id,
        "url": StorageService.create_signed_url(AUDIO_BUCKET, session.audio_path),
        "expires_in": settings.signed_url_ttl_seconds,
    }
