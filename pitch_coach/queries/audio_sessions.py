import json
import uuid

import aiosqlite

from pitch_coach.models import AudioSession


async def create_audio_session(
    conn: aiosqlite.Connection,
    user_id: str,
    session_type: str,
    audio_path: str,
    project_id: str | None = None,
    transcript: str | None = None,
    analysis_json: dict | None = None,
) -> AudioSession:
    session_id = str(uuid.uuid4())
    await conn.execute(
        "INSERT INTO audio_sessions "
        "(id, user_id, project_id, type, audio_path, transcript, analysis_json) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            session_id,
            user_id,
            project_id,
            session_type,
            audio_path,
            transcript,
            json.dumps(analysis_json) if analysis_json is not None else None,
        ),
    )
    await conn.commit()
    return await get_audio_session(conn, session_id)


async def get_audio_session(conn: aiosqlite.Connection, session_id: str) -> AudioSession | None:
    row = await conn.execute("SELECT * FROM audio_sessions WHERE id = ?", (session_id,))
    session = await row.fetchone()
    return AudioSession.from_row(session) if session else None


async def list_audio_sessions(
    conn: aiosqlite.Connection,
    user_id: str,
    session_type: str | None = None,
    project_id: str | None = None,
) -> list[AudioSession]:
    """Return the user's sessions, newest first, optionally filtered."""
    query = "SELECT * FROM audio_sessions WHERE user_id = ?"
    params: list = [user_id]
    if session_type:
        query += " AND type = ?"
        params.append(session_type)
    if project_id:
        query += " AND project_id = ?"
        params.append(project_id)
    query += " ORDER BY created_at DESC, rowid DESC"
    rows = await conn.execute(query, params)
    return [AudioSession.from_row(row) for row in await rows.fetchall()]


async def update_audio_path(conn: aiosqlite.Connection, session_id: str, audio_path: str) -> None:
    await conn.execute(
        "UPDATE audio_sessions SET audio_path = ? WHERE id = ?", (audio_path, session_id)
    )
    await conn.commit()


async def update_transcript(conn: aiosqlite.Connection, session_id: str, transcript: str) -> None:
    await conn.execute(
        "UPDATE audio_sessions SET transcript = ? WHERE id = ?", (transcript, session_id)
    )
    await conn.commit()


async def update_analysis(conn: aiosqlite.Connection, session_id: str, analysis_json: dict) -> None:
    await conn.execute(
        "UPDATE audio_sessions SET analysis_json = ? WHERE id = ?",
        (json.dumps(analysis_json), session_id),
    )
    await conn.commit()


async def previous_analyzed_pitch_sessions(
    conn: aiosqlite.Connection,
    project_id: str,
    exclude_session_id: str | None = None,
    limit: int = 3,
) -> list[AudioSession]:
    """Most recent analyzed pitch sessions of a project, returned oldest first."""
    query = (
        "SELECT * FROM audio_sessions "
        "WHERE project_id = ? AND type = 'pitch' AND analysis_json IS NOT NULL"
    )
    params: list = [project_id]
    if exclude_session_id:
        query += " AND id != ?"
        params.append(exclude_session_id)
    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)
    rows = await conn.execute(query, params)
    sessions = [AudioSession.from_row(row) for row in await rows.fetchall()]
    sessions.reverse()
    return sessions


async def count_analyzed_pitch_sessions(
    conn: aiosqlite.Connection, project_id: str, exclude_session_id: str | None = None
) -> int:
    query = (
        "SELECT COUNT(*) FROM audio_sessions "
        "WHERE project_id = ? AND type = 'pitch' AND analysis_json IS NOT NULL"
    )
    params: list = [project_id]
    if exclude_session_id:
        query += " AND id != ?"
        params.append(exclude_session_id)
    rows = await conn.execute(query, params)
    (count,) = await rows.fetchone()
    return count
