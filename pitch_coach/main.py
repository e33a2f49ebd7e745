import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from pitch_coach.config import settings
from pitch_coach.database import init_db
from pitch_coach.errors import register_exception_handlers
from pitch_coach.routes import audio, auth, projects, slides, storage

FRONTEND_DIR = Path(__file__).parent.parent / "frontend"

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create SQLite tables on startup. Nothing to tear down on shutdown."""
    await init_db()
    yield


app = FastAPI(
    title="pitch-coach",
    description="Pitch recording, transcription and AI coaching feedback",
    version="0.1.0",
    lifespan=lifespan,
)
register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(audio.router)
app.include_router(slides.router)
app.include_router(storage.router)

# Serve static files (CSS, JS)
app.mount("/static", StaticFiles(directory=FRONTEND_DIR, check_dir=False), name="static")


@app.get("/")
async def serve_frontend():
    """Serve the frontend HTML."""
    return FileResponse(FRONTEND_DIR / "index.html")


def run() -> None:
    import uvicorn

    uvicorn.run("pitch_coach.main:app", host=settings.host, port=settings.port)
