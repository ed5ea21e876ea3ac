"""
Exceptions raised by the orchestration layer and the handlers that turn
them into JSON responses.
"""
import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for all application errors."""
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class UnauthorizedError(AppError):
    """No session, or the session carries no subject id."""
    status_code = 401


class UserNotFoundError(AppError):
    """The session subject has no local user record."""
    status_code = 404


class AssessmentNotFoundError(AppError):
    status_code = 404


class GenerationError(AppError):
    """The generative endpoint produced nothing usable."""
    status_code = 502


class PersistenceError(AppError):
    status_code = 500


class InvalidTransitionError(AppError):
    """A voice-call event arrived in a state that does not accept it."""
    status_code = 409


# ── FastAPI handlers ─────────────────────────────────────

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    content = {"detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "error": str(exc)},
    )
