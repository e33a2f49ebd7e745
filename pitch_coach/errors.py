import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PitchCoachError(Exception):
    """Base class for failures of an external collaborator."""


class TranscriptionError(PitchCoachError):
    pass


class GenerationError(PitchCoachError):
    pass


class StorageError(PitchCoachError):
    pass


class SlideExtractionError(PitchCoachError):
    pass


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid request"))
    return "; ".join(parts) or "Invalid request"


async def http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _validation_message(exc)})


async def collaborator_exception_handler(
    request: Request, exc: PitchCoachError
) -> JSONResponse:
    logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500, content={"error": str(exc) or "Internal server error"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map every error onto a JSON ``{"error": ...}`` body."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PitchCoachError, collaborator_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
