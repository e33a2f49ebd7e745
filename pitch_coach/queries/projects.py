import uuid

import aiosqlite

from pitch_coach.models import Project

# Columns a client may write through create/update/context endpoints.
EDITABLE_COLUMNS = (
    "name",
    "project_type",
    "description",
    "default_audience",
    "default_goal",
    "default_duration",
    "default_scenario",
    "english_level",
    "tone_style",
    "constraints",
    "additional_notes",
    "context_transcript",
    "transcription_language",
    "slide_deck_path",
)


async def list_projects(conn: aiosqlite.Connection, user_id: str) -> list[Project]:
    rows = await conn.execute(
        "SELECT * FROM projects WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
        (user_id,),
    )
    return [Project.from_row(row) for row in await rows.fetchall()]


async def get_project(conn: aiosqlite.Connection, project_id: str) -> Project | None:
    row = await conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
    project = await row.fetchone()
    return Project.from_row(project) if project else None


async def create_project(conn: aiosqlite.Connection, user_id: str, values: dict) -> Project:
    project_id = str(uuid.uuid4())
    columns = [c for c in EDITABLE_COLUMNS if c in values]
    placeholders = ", ".join("?" for _ in columns)
    await conn.execute(
        f"INSERT INTO projects (id, user_id, {', '.join(columns)}) "
        f"VALUES (?, ?, {placeholders})",
        (project_id, user_id, *(values[c] for c in columns)),
    )
    await conn.commit()
    return await get_project(conn, project_id)


async def update_project(
    conn: aiosqlite.Connection, project_id: str, updates: dict
) -> Project | None:
    columns = [c for c in EDITABLE_COLUMNS if c in updates]
    if columns:
        assignments = ", ".join(f"{c} = ?" for c in columns)
        await conn.execute(
            f"UPDATE projects SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*(updates[c] for c in columns), project_id),
        )
        await conn.commit()
    return await get_project(conn, project_id)


async def delete_project(conn: aiosqlite.Connection, project_id: str) -> None:
    await conn.execute("DELETE FROM project_slides WHERE project_id = ?", (project_id,))
    await conn.execute(
        "UPDATE audio_sessions SET project_id = NULL WHERE project_id = ?", (project_id,)
    )
    await conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    await conn.commit()
