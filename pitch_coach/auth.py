from fastapi import Header, HTTPException

from pitch_coach.database import get_async_conn
from pitch_coach.models import User
from pitch_coach.queries.users import get_user_by_token


async def get_current_user(authorization: str | None = Header(default=None)) -> User:
    """Resolve ``Authorization: Bearer <api_token>`` to a user or fail with 401."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")

    conn = await get_async_conn()
    try:
        user = await get_user_by_token(conn, token.strip())
    finally:
        await conn.close()
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
