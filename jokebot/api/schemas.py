"""
API Schemas - Request/response contracts for the joke bot HTTP host.
"""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator

from jokebot.orchestration.state import ConversationState


# ============================================================================
# Request Schemas
# ============================================================================

class ChatRequest(BaseModel):
    """
    Incoming chat turn.

    Attributes:
        session_id: Conversation identifier (generated when omitted).
        message: The user's message (may be empty; max 2000 chars).
    """
    session_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        max_length=128,
        description="Conversation identifier (optional)",
    )
    message: str = Field(
        default="",
        max_length=2000,
        description="User message for this turn",
    )

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        """Reject blank session ids."""
        if not v.strip():
            raise ValueError("session_id cannot be empty or whitespace")
        return v.strip()


# ============================================================================
# Response Schemas
# ============================================================================

class JokeModel(BaseModel):
    """A joke with its metadata."""
    content: str
    category: str
    difficulty: str
    tags: list[str] = Field(default_factory=list)


class MessageModel(BaseModel):
    """One transcript entry."""
    id: str
    role: str
    content: str


class SessionState(BaseModel):
    """
    Public view of a conversation.

    Attributes:
        stage: Current dialogue stage.
        user_name: Known user name (empty until given).
        jokes_count: Jokes delivered since the conversation started.
        preferred_category: Category of the last delivered joke.
        recent_jokes: Recently shown joke contents, oldest first.
        retrieved_context: Jokes retrieved on the last turn.
    """
    stage: str
    user_name: str = ""
    jokes_count: int = Field(default=0, ge=0)
    preferred_category: str | None = None
    recent_jokes: list[str] = Field(default_factory=list, max_length=5)
    retrieved_context: list[JokeModel] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: ConversationState) -> "SessionState":
        return cls(
            stage=state.stage.value,
            user_name=state.user_name,
            jokes_count=state.jokes_count,
            preferred_category=state.user_preferences.preferred_joke_category,
            recent_jokes=state.recent_jokes,
            retrieved_context=[
                JokeModel(
                    content=joke.content,
                    category=joke.category,
                    difficulty=joke.difficulty.value,
                    tags=sorted(joke.tags),
                )
                for joke in state.retrieved_context
            ],
        )


class ChatResponse(BaseModel):
    """Reply to a chat turn."""
    session_id: str
    reply: str
    state: SessionState


class TranscriptResponse(BaseModel):
    """Full session view including the transcript."""
    session_id: str
    state: SessionState
    messages: list[MessageModel] = Field(default_factory=list)

    @classmethod
    def from_state(cls, session_id: str, state: ConversationState) -> "TranscriptResponse":
        return cls(
            session_id=session_id,
            state=SessionState.from_state(state),
            messages=[
                MessageModel(id=m.id, role=m.role, content=m.content)
                for m in state.messages
            ],
        )


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response.

    Attributes:
        error: Error type or code.
        detail: Human-readable error message.
    """
    error: str = Field(..., description="Error type or code")
    detail: Any = Field(..., description="Human-readable error message")
