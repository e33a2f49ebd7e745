import sqlite3

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pitch_coach.auth import get_current_user
from pitch_coach.database import get_async_conn
from pitch_coach.models import User
from pitch_coach.queries.users import create_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str
    full_name: str | None = None


@router.post("/register")
async def register(body: RegisterRequest) -> dict:
    """Create a user and return its API token (shown only here)."""
    email = body.email.strip().lower()
    if not email or "@" not in email:
        raise HTTPException(status_code=400, detail="A valid email is required")

    conn = await get_async_conn()
    try:
        user = await create_user(conn, email, (body.full_name or "").strip() or None)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail=f"User '{email}' already exists")
    finally:
        await conn.close()
    return {"user": user.to_dict(), "api_token": user.api_token}


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> dict:
    return {"user": user.to_dict()}
