"""
Application configuration - Centralized settings and environment variables.

This module provides type-safe configuration with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ModelConfig:
    """LLM model configuration."""
    name: str = "llama-3.3-70b-versatile"
    classifier_temperature: float = 0.0
    reply_temperature: float = 0.7
    max_output_tokens: int = 256


@dataclass
class RetrievalConfig:
    """
    Retrieval tuning.

    Scores are cosine similarities from the FAISS inner-product index,
    so a candidate passes the semantic tier when ``score >= score_threshold``.
    """
    score_threshold: float = 0.6
    semantic_k: int = 3
    fallback_k: int = 2
    candidate_multiplier: int = 2
    min_candidates: int = 10


@dataclass
class ConversationConfig:
    """Conversation bookkeeping limits."""
    recent_jokes_capacity: int = 5
    classifier_history_window: int = 5
    max_message_length: int = 2000


@dataclass
class Settings:
    """
    Application settings.

    Loads from environment variables with sensible defaults.
    Does NOT fail if API keys are missing (allows import without env).
    """

    # API Keys (optional at import time)
    groq_api_key: str | None = field(default=None)
    use_llm: bool = True

    model: ModelConfig = field(default_factory=ModelConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)

    # Optional JSON corpus; the built-in jokes are used when unset or unreadable
    corpus_path: Path | None = None

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Load values from environment after initialization."""
        if self.groq_api_key is None:
            self.groq_api_key = os.getenv("GROQ_API_KEY")

        if os.getenv("JOKEBOT_USE_LLM", "").lower() in ("0", "false", "no"):
            self.use_llm = False

        if model := os.getenv("JOKEBOT_MODEL"):
            self.model.name = model

        if corpus := os.getenv("JOKEBOT_CORPUS_PATH"):
            self.corpus_path = Path(corpus)

        if threshold := os.getenv("JOKEBOT_SCORE_THRESHOLD"):
            self.retrieval.score_threshold = float(threshold)

        if semantic_k := os.getenv("JOKEBOT_SEMANTIC_K"):
            self.retrieval.semantic_k = int(semantic_k)

        if fallback_k := os.getenv("JOKEBOT_FALLBACK_K"):
            self.retrieval.fallback_k = int(fallback_k)

        if port := os.getenv("API_PORT"):
            self.api_port = int(port)

        if host := os.getenv("API_HOST"):
            self.api_host = host

        if level := os.getenv("LOG_LEVEL"):
            self.log_level = level.upper()

        if os.getenv("DEBUG", "").lower() in ("1", "true", "yes"):
            self.debug = True

    @property
    def has_api_key(self) -> bool:
        """Check if API key is configured."""
        return bool(self.groq_api_key)

    @property
    def llm_enabled(self) -> bool:
        """Whether the Groq-backed classifier and reply generator should be used."""
        return self.use_llm and self.has_api_key

    def require_api_key(self) -> str:
        """Get API key or raise error if not configured."""
        if not self.groq_api_key:
            raise ValueError("GROQ_API_KEY environment variable is required")
        return self.groq_api_key

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (excludes sensitive data)."""
        return {
            "model": {
                "name": self.model.name,
                "classifier_temperature": self.model.classifier_temperature,
                "reply_temperature": self.model.reply_temperature,
                "max_output_tokens": self.model.max_output_tokens,
            },
            "retrieval": {
                "score_threshold": self.retrieval.score_threshold,
                "semantic_k": self.retrieval.semantic_k,
                "fallback_k": self.retrieval.fallback_k,
                "candidate_multiplier": self.retrieval.candidate_multiplier,
                "min_candidates": self.retrieval.min_candidates,
            },
            "conversation": {
                "recent_jokes_capacity": self.conversation.recent_jokes_capacity,
                "classifier_history_window": self.conversation.classifier_history_window,
                "max_message_length": self.conversation.max_message_length,
            },
            "corpus_path": str(self.corpus_path) if self.corpus_path else None,
            "api": {
                "host": self.api_host,
                "port": self.api_port,
                "debug": self.debug,
            },
            "log_level": self.log_level,
            "has_api_key": self.has_api_key,
            "llm_enabled": self.llm_enabled,
        }


# Global settings instance
settings = Settings()
