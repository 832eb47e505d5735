"""
Conversation State - Typed state object for the joke bot dialogue.

This module defines the state threaded through every turn of the
LangGraph controller.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from jokebot.retrieval.corpus import Joke
from jokebot.retrieval.recency import RECENT_JOKES_CAPACITY


class Stage(str, Enum):
    """Discrete phase of the scripted dialogue."""

    GREETING = "greeting"
    WAITING_FOR_NAME = "waiting_for_name"
    ASKING_FOR_JOKE = "asking_for_joke"
    ASKING_FOR_MORE = "asking_for_more"
    CONVERSATION_ENDED = "conversation_ended"

    @classmethod
    def parse(cls, value: Any) -> "Stage | None":
        """Return the matching stage, or None for unrecognized values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


@dataclass
class Message:
    """A single message in the transcript."""
    role: Literal["user", "assistant"]
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class UserPreferences:
    """Preferences learned from delivered jokes."""
    preferred_joke_category: str | None = None


@dataclass
class ConversationState:
    """
    State object for one joke bot conversation.

    The controller never mutates an instance in place: each turn reads the
    current state and returns a new one.

    Attributes:
        messages: Transcript in insertion order; entries are upserted by id.
        stage: Current dialogue stage.
        user_name: Extracted user name, empty until known.
        jokes_count: Jokes delivered since the conversation (re)started.
        last_query: Most recent user utterance considered for retrieval.
        retrieved_context: Jokes from the most recent retrieval call.
        user_preferences: Sticky preferences (preferred joke category).
        conversation_history: Every raw user utterance, oldest first.
        recent_jokes: Contents of the last jokes shown (capacity 5).
    """
    messages: list[Message] = field(default_factory=list)
    stage: Stage = Stage.GREETING
    user_name: str = ""
    jokes_count: int = 0
    last_query: str = ""
    retrieved_context: list[Joke] = field(default_factory=list)
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    conversation_history: list[str] = field(default_factory=list)
    recent_jokes: list[str] = field(default_factory=list)

    @property
    def last_reply(self) -> str | None:
        """Content of the latest assistant message, if any."""
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message.content
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert state to dictionary for serialization."""
        stage = self.stage.value if isinstance(self.stage, Stage) else str(self.stage)
        return {
            "messages": [
                {"id": m.id, "role": m.role, "content": m.content}
                for m in self.messages
            ],
            "stage": stage,
            "user_name": self.user_name,
            "jokes_count": self.jokes_count,
            "last_query": self.last_query,
            "retrieved_context": [joke.to_dict() for joke in self.retrieved_context],
            "user_preferences": {
                "preferred_joke_category": self.user_preferences.preferred_joke_category,
            },
            "conversation_history": list(self.conversation_history),
            "recent_jokes": list(self.recent_jokes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationState":
        """
        Rebuild state persisted with ``to_dict``.

        Unrecognized stage values load as ``greeting`` and the recent-jokes
        window is trimmed to its capacity.
        """
        preferences = data.get("user_preferences") or {}
        return cls(
            messages=[
                Message(role=m["role"], content=m["content"], id=m.get("id") or str(uuid.uuid4()))
                for m in data.get("messages", [])
            ],
            stage=Stage.parse(data.get("stage")) or Stage.GREETING,
            user_name=data.get("user_name") or "",
            jokes_count=max(0, int(data.get("jokes_count") or 0)),
            last_query=data.get("last_query") or "",
            retrieved_context=[Joke.from_dict(j) for j in data.get("retrieved_context", [])],
            user_preferences=UserPreferences(
                preferred_joke_category=preferences.get("preferred_joke_category"),
            ),
            conversation_history=list(data.get("conversation_history", [])),
            recent_jokes=list(data.get("recent_jokes", []))[-RECENT_JOKES_CAPACITY:],
        )
