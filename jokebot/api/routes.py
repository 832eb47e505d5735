"""
API Routes - HTTP endpoints for the joke bot.

Current endpoints:
- POST /chat - Advance a conversation by one turn
- GET /session/{session_id} - Inspect a conversation and its transcript
- POST /session/{session_id}/reset - Start a conversation over
"""

from __future__ import annotations

import logging
import threading

from fastapi import APIRouter, HTTPException

from jokebot.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    SessionState,
    TranscriptResponse,
)
from jokebot.core.config import settings
from jokebot.orchestration.graph import ConversationOrchestrator, build_controller


logger = logging.getLogger("jokebot.api")

router = APIRouter()

# Shared orchestrator instance for session management
_orchestrator: ConversationOrchestrator | None = None
_orchestrator_lock = threading.Lock()


def get_orchestrator() -> ConversationOrchestrator:
    """Get or create the shared orchestrator instance (built at most once)."""
    global _orchestrator
    if _orchestrator is None:
        with _orchestrator_lock:
            if _orchestrator is None:
                _orchestrator = ConversationOrchestrator(build_controller(settings))
    return _orchestrator


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        422: {"description": "Invalid request"},
        503: {"model": ErrorResponse, "description": "Joke index not ready"},
    },
    summary="Send a message",
    description="Advance the conversation by one turn and return the bot's reply.",
)
def chat(request: ChatRequest) -> ChatResponse:
    """Process one user message."""
    orchestrator = get_orchestrator()
    state, reply = orchestrator.process_message(request.session_id, request.message)
    logger.info("session=%s stage=%s jokes=%d", request.session_id, state.stage.value, state.jokes_count)
    return ChatResponse(
        session_id=request.session_id,
        reply=reply,
        state=SessionState.from_state(state),
    )


@router.get(
    "/session/{session_id}",
    response_model=TranscriptResponse,
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
    summary="Get a session",
)
def get_session(session_id: str) -> TranscriptResponse:
    """Return the session state and transcript."""
    state = get_orchestrator().get_session(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return TranscriptResponse.from_state(session_id, state)


@router.post(
    "/session/{session_id}/reset",
    response_model=TranscriptResponse,
    summary="Reset a session",
    description="Discard the conversation and start again from the greeting stage.",
)
def reset_session(session_id: str) -> TranscriptResponse:
    """Start the session over."""
    state = get_orchestrator().reset_session(session_id)
    return TranscriptResponse.from_state(session_id, state)
