"""
Error types and HTTP exception handlers.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("jokebot.errors")


class JokeBotError(Exception):
    """Base class for all joke bot errors."""


class IndexNotInitializedError(JokeBotError):
    """Retrieval was attempted before the joke index finished initializing.

    This is a host wiring bug, so it is always propagated to the caller.
    """


class GenerationError(JokeBotError):
    """The reply generator could not produce usable text."""


class CorpusError(JokeBotError):
    """A corpus record or file could not be parsed."""


async def index_not_ready_handler(request: Request, exc: IndexNotInitializedError) -> JSONResponse:
    """Return 503 while the joke index is unavailable."""

    logger.error("Joke index not initialized on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={
            "error": "index_not_ready",
            "detail": "The joke index is not initialized yet.",
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a generic JSON error response while logging the exception."""

    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "detail": "Something unexpected happened. Please try again later.",
        },
    )
