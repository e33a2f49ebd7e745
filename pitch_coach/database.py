import aiosqlite

from pitch_coach.config import settings

CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    full_name TEXT,
    api_token TEXT NOT NULL UNIQUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

CREATE_PROJECTS = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    project_type TEXT,
    description TEXT,
    default_audience TEXT,
    default_goal TEXT,
    default_duration TEXT,
    default_scenario TEXT,
    english_level TEXT,
    tone_style TEXT,
    constraints TEXT,
    additional_notes TEXT,
    context_transcript TEXT,
    transcription_language TEXT,
    slide_deck_path TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
)
"""

CREATE_AUDIO_SESSIONS = """
CREATE TABLE IF NOT EXISTS audio_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    project_id TEXT,
    type TEXT NOT NULL,
    audio_path TEXT NOT NULL,
    transcript TEXT,
    analysis_json TEXT,
    created_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE SET NULL
)
"""

CREATE_PROJECT_SLIDES = """
CREATE TABLE IF NOT EXISTS project_slides (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    "index" INTEGER NOT NULL,
    title TEXT,
    content TEXT,
    thumbnail_url TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
)
"""

_DDL = [CREATE_USERS, CREATE_PROJECTS, CREATE_AUDIO_SESSIONS, CREATE_PROJECT_SLIDES]


async def init_db() -> None:
    """Create all tables. Called once at server startup via FastAPI lifespan."""
    async with aiosqlite.connect(settings.database_path) as db:
        for stmt in _DDL:
            await db.execute(stmt)
        await db.commit()


async def get_async_conn() -> aiosqlite.Connection:
    """Async connection for use in FastAPI route handlers."""
    conn = await aiosqlite.connect(settings.database_path)
    await conn.execute("PRAGMA busy_timeout = 5000")
    await conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = aiosqlite.Row
    return conn

