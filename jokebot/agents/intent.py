"""
Intent Resolution - Classify user utterances into the joke bot vocabulary.

The controller depends only on ``IntentClassifier``; the keyword classifier
here is the cheap, deterministic variant and the Groq classifier in
``llm_intent`` is the context-aware one.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from jokebot.orchestration.state import Stage


class IntentKind(str, Enum):
    """Supported intents."""

    WANT_JOKE = "want_joke"
    DONT_WANT_JOKE = "dont_want_joke"
    GREETING = "greeting"
    FAREWELL = "farewell"
    PROVIDE_NAME = "provide_name"
    UNCLEAR = "unclear"


@dataclass
class Intent:
    """
    Result of classifying one utterance.

    Attributes:
        kind: The classified intent.
        confidence: Score between 0.0 and 1.0 (clamped).
        extracted_name: Name found in the utterance, if any.
        reasoning: Optional short explanation from the classifier.
    """
    kind: IntentKind
    confidence: float = 1.0
    extracted_name: str | None = None
    reasoning: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.confidence = max(0.0, min(1.0, float(self.confidence)))
        if self.extracted_name is not None:
            self.extracted_name = self.extracted_name.strip() or None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "intent": self.kind.value,
            "confidence": self.confidence,
            "extracted_name": self.extracted_name,
            "reasoning": self.reasoning,
        }


class IntentClassifier(ABC):
    """Classifies a user utterance given the conversation context."""

    @abstractmethod
    def classify(
        self,
        utterance: str,
        *,
        history: Sequence[str] = (),
        stage: Stage | None = None,
        user_name: str = "",
    ) -> Intent:
        """Return the intent for ``utterance``."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable summary of the classification strategy."""


# ============================================================================
# Keyword classifier
# ============================================================================

MATCH_CONFIDENCE = 0.9
UNCLEAR_CONFIDENCE = 0.4

WANT_WORDS = {
    "yes", "yeah", "yep", "yup", "sure", "ok", "okay", "please", "more",
    "another", "joke",
    "так", "хочу", "давай", "ще", "ага",
}
WANT_PHRASES = (
    "of course", "why not", "no problem", "one more", "tell me", "go on", "go ahead",
)

REFUSAL_WORDS = {
    "no", "nope", "nah", "not", "don't", "dont", "stop", "enough", "later",
    "ні", "досить", "стоп", "не",
}
REFUSAL_PHRASES = ("no thanks", "that's enough", "that is enough", "not now", "i'm good")

GREETING_WORDS = {
    "hello", "hi", "hey", "hiya", "start", "restart",
    "привіт", "вітаю", "почати", "знову",
}
GREETING_PHRASES = ("good morning", "good afternoon", "good evening", "добрий день", "start over")

# Words that can trail a greeting without being a name ("hello there")
GREETING_FILLER = {"there", "again", "everyone", "all", "guys", "bot", "friend", "всім"}

FAREWELL_WORDS = {"bye", "goodbye", "farewell", "cya", "бувай", "папа"}
FAREWELL_PHRASES = ("see you", "see ya", "good night", "до побачення", "до зустрічі")

# Phrases are checked before single words, so "why not" is not read as "not".
PHRASE_RULES = (
    (REFUSAL_PHRASES, IntentKind.DONT_WANT_JOKE),
    (WANT_PHRASES, IntentKind.WANT_JOKE),
    (FAREWELL_PHRASES, IntentKind.FAREWELL),
    (GREETING_PHRASES, IntentKind.GREETING),
)
WORD_RULES = (
    (REFUSAL_WORDS, IntentKind.DONT_WANT_JOKE),
    (FAREWELL_WORDS, IntentKind.FAREWELL),
    (WANT_WORDS, IntentKind.WANT_JOKE),
    (GREETING_WORDS, IntentKind.GREETING),
)

LEADING_GREETING = re.compile(
    r"^(?:hi|hello|hey|hiya|привіт|вітаю)(?![\w'’])[\s,!.]*",
    re.IGNORECASE,
)
NAME_PREFIXES = re.compile(
    r"^(?:my name is|my name's|i am|i'm|im|call me|it's|it is|this is|name is|"
    r"мене звуть|моє ім'я|моє ім’я|я)\s+",
    re.IGNORECASE,
)


def _tokens(text: str) -> list[str]:
    return re.findall(r"[\w'’]+", text.lower())


def _has_phrase(text: str, phrases: Sequence[str]) -> bool:
    return any(
        re.search(rf"(?<![\w'’]){re.escape(phrase)}(?![\w'’])", text)
        for phrase in phrases
    )


def _matches(text: str, tokens: set[str], words: set[str], phrases: Sequence[str]) -> bool:
    return bool(tokens & words) or _has_phrase(text, phrases)


def extract_name(utterance: str) -> str | None:
    """
    Pull a name out of an introduction like "my name is Ann".

    A leading greeting is dropped first, so "Hi, I'm Ann" and "Hey Ann"
    both give "Ann". Returns None when nothing usable remains.
    """
    text = LEADING_GREETING.sub("", utterance.strip(), count=1)
    stripped = NAME_PREFIXES.sub("", text).strip(" \t,.!?;:\"'()")
    if not stripped:
        return None
    words = stripped.split()
    # Names are short; keep the first two words of longer replies.
    name = " ".join(words[:2])
    return name[:50] or None


class KeywordIntentClassifier(IntentClassifier):
    """Deterministic keyword classifier (English and Ukrainian)."""

    def describe(self) -> str:
        return "Keyword intent classifier"

    def classify(
        self,
        utterance: str,
        *,
        history: Sequence[str] = (),
        stage: Stage | None = None,
        user_name: str = "",
    ) -> Intent:
        text = utterance.strip().lower()
        if not text:
            return Intent(kind=IntentKind.UNCLEAR, confidence=UNCLEAR_CONFIDENCE)

        tokens = set(_tokens(text))

        if stage is Stage.WAITING_FOR_NAME:
            return self._classify_name(utterance, tokens)

        # After a goodbye only a greeting restarts, so check it first.
        if stage is Stage.CONVERSATION_ENDED and _matches(text, tokens, GREETING_WORDS, GREETING_PHRASES):
            return Intent(kind=IntentKind.GREETING, confidence=MATCH_CONFIDENCE)

        for phrases, kind in PHRASE_RULES:
            if _has_phrase(text, phrases):
                return Intent(kind=kind, confidence=MATCH_CONFIDENCE)
        for words, kind in WORD_RULES:
            if tokens & words:
                return Intent(kind=kind, confidence=MATCH_CONFIDENCE)
        return Intent(kind=IntentKind.UNCLEAR, confidence=UNCLEAR_CONFIDENCE)

    def _classify_name(self, utterance: str, tokens: set[str]) -> Intent:
        # A greeting, even with filler like "hello there", is not a name.
        if tokens & GREETING_WORDS and tokens <= GREETING_WORDS | GREETING_FILLER:
            return Intent(kind=IntentKind.GREETING, confidence=MATCH_CONFIDENCE)
        name = extract_name(utterance)
        if not name:
            return Intent(kind=IntentKind.UNCLEAR, confidence=UNCLEAR_CONFIDENCE)
        return Intent(
            kind=IntentKind.PROVIDE_NAME,
            confidence=MATCH_CONFIDENCE,
            extracted_name=name,
        )
