"""
FastAPI application entrypoint for the joke bot.
"""

from __future__ import annotations

# Load .env file before other imports
from dotenv import load_dotenv
load_dotenv()

import logging

from fastapi import FastAPI

from jokebot.api.routes import get_orchestrator, router
from jokebot.core.config import settings
from jokebot.core.errors import (
    IndexNotInitializedError,
    index_not_ready_handler,
    unhandled_exception_handler,
)


logger = logging.getLogger("jokebot.app")

app = FastAPI(
    title="Joke Bot API",
    description="Stage-driven joke bot with retrieval-backed joke selection",
    version="1.0.0",
    debug=settings.debug,
)

app.include_router(router)
app.add_exception_handler(IndexNotInitializedError, index_not_ready_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
def startup() -> None:
    """Configure logging and build the index before serving requests."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    get_orchestrator()
    logger.info("Joke bot started (llm_enabled=%s)", settings.llm_enabled)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/config")
async def get_config() -> dict:
    """Get non-sensitive configuration."""
    return settings.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
