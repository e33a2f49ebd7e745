import secrets
import uuid

import aiosqlite

from pitch_coach.models import User


async def create_user(conn: aiosqlite.Connection, email: str, full_name: str | None) -> User:
    user_id = str(uuid.uuid4())
    await conn.execute(
        "INSERT INTO users (id, email, full_name, api_token) VALUES (?, ?, ?, ?)",
        (user_id, email, full_name, secrets.token_urlsafe(32)),
    )
    await conn.commit()
    row = await conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    return User.from_row(await row.fetchone())


async def get_user_by_token(conn: aiosqlite.Connection, token: str) -> User | None:
    row = await conn.execute("SELECT * FROM users WHERE api_token = ?", (token,))
    user = await row.fetchone()
    return User.from_row(user) if user else None
