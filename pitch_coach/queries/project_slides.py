import uuid

import aiosqlite

from pitch_coach.models import ProjectSlide


async def get_project_slides(conn: aiosqlite.Connection, project_id: str) -> list[ProjectSlide]:
    rows = await conn.execute(
        'SELECT * FROM project_slides WHERE project_id = ? ORDER BY "index"',
        (project_id,),
    )
    return [ProjectSlide.from_row(row) for row in await rows.fetchall()]


async def replace_project_slides(
    conn: aiosqlite.Connection, project_id: str, slides: list[dict]
) -> None:
    """Delete the project's slides and insert *slides* in one transaction."""
    await conn.execute("DELETE FROM project_slides WHERE project_id = ?", (project_id,))
    await conn.executemany(
        'INSERT INTO project_slides (id, project_id, "index", title, content, thumbnail_url) '
        "VALUES (?, ?, ?, ?, ?, ?)",
        [
            (
                str(uuid.uuid4()),
                project_id,
                slide["index"],
                slide.get("title") or None,
                slide.get("content") or None,
                slide.get("thumbnail_url") or None,
            )
            for slide in slides
        ],
    )
    await conn.commit()
