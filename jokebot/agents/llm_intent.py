"""
GroqIntentClassifier - Context-aware intent classification with an LLM.

The model sees the current stage, the known user name and a window of
recent utterances, which helps with replies like "sure, go on" or names
given without an introduction. Output parsing is strict: anything that is
not a well-formed JSON verdict becomes an ``unclear`` intent.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from groq import Groq

from jokebot.agents.intent import Intent, IntentClassifier, IntentKind
from jokebot.orchestration.state import Stage


logger = logging.getLogger("jokebot.intent")

# Maximum characters of user input forwarded to the model
MAX_MESSAGE_LENGTH = 2000

# Default fallback values when classification fails
FALLBACK_CONFIDENCE = 0.3
FALLBACK_REASON = "Unreliable classification output"

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_HISTORY_WINDOW = 5


class GroqIntentClassifier(IntentClassifier):
    """
    Intent classifier backed by a Groq chat model.

    Defaults to temperature 0 so the same context yields the same intent, and
    never raises: API and parsing failures produce an ``unclear`` intent
    with lowered confidence.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        temperature: float = 0.0,
        client: Any | None = None,
    ) -> None:
        """
        Initialize the classifier.

        Args:
            api_key: Groq API key. If None, reads from GROQ_API_KEY env var.
            model: Groq model name.
            history_window: Number of recent utterances shown to the model.
            temperature: Sampling temperature for the verdict.
            client: Preconfigured chat client (skips API key lookup).
        """
        if client is None:
            api_key = api_key or os.getenv("GROQ_API_KEY")
            if not api_key:
                raise ValueError("GROQ_API_KEY environment variable is required")
            client = Groq(api_key=api_key)

        self._client = client
        self._model = model
        self._history_window = history_window
        self._temperature = temperature
        self._system_prompt = self._load_prompt()

    def describe(self) -> str:
        return f"Groq intent classifier ({self._model})"

    def _load_prompt(self) -> str:
        """Load the system prompt from the prompts directory."""
        prompt_path = Path(__file__).parent.parent / "prompts" / "intent_classifier.md"
        if not prompt_path.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
        return prompt_path.read_text(encoding="utf-8")

    def _build_user_prompt(
        self,
        utterance: str,
        history: Sequence[str],
        stage: Stage | None,
        user_name: str,
    ) -> str:
        if len(utterance) > MAX_MESSAGE_LENGTH:
            utterance = utterance[:MAX_MESSAGE_LENGTH] + "... [TRUNCATED]"

        window = list(history)[-self._history_window:] if self._history_window > 0 else []
        history_block = "\n".join(f"- {line}" for line in window) or "- (no previous messages)"

        return (
            f"STAGE: {stage.value if stage else 'unknown'}\n"
            f"USER NAME: {user_name or 'unknown'}\n"
            f"RECENT MESSAGES:\n{history_block}\n\n"
            f"CURRENT MESSAGE: \"{utterance}\""
        )

    def _parse_response(self, response_text: str) -> Intent:
        """
        Parse and validate the LLM response.

        Returns:
            The parsed intent, or an ``unclear`` fallback if the response
            is not a valid verdict.
        """
        try:
            cleaned = response_text.strip()
            if cleaned.startswith("```"):
                lines = cleaned.split("\n")[1:]
                if lines and lines[-1].strip() == "```":
                    lines = lines[:-1]
                cleaned = "\n".join(lines).strip()

            data = json.loads(cleaned)
            if not isinstance(data, dict):
                raise ValueError("Response is not a JSON object")
            if "intent" not in data:
                raise ValueError("Missing 'intent' field")

            kind = IntentKind(str(data["intent"]).strip().lower())
            confidence = float(data.get("confidence", 0.5))

            name = data.get("extracted_name", data.get("extractedName"))
            if not isinstance(name, str) or name.strip().lower() in ("", "null", "none"):
                name = None

            reasoning = data.get("reasoning")
            return Intent(
                kind=kind,
                confidence=confidence,
                extracted_name=name,
                reasoning=str(reasoning) if reasoning else None,
            )

        except (json.JSONDecodeError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Unparseable intent response (%s): %r", exc, response_text[:200])
            return Intent(
                kind=IntentKind.UNCLEAR,
                confidence=FALLBACK_CONFIDENCE,
                reasoning=FALLBACK_REASON,
            )

    def classify(
        self,
        utterance: str,
        *,
        history: Sequence[str] = (),
        stage: Stage | None = None,
        user_name: str = "",
    ) -> Intent:
        if not utterance or not utterance.strip():
            return Intent(
                kind=IntentKind.UNCLEAR,
                confidence=FALLBACK_CONFIDENCE,
                reasoning="Empty message",
            )

        user_prompt = self._build_user_prompt(utterance.strip(), history, stage, user_name)

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                max_tokens=200,
            )
            response_text = response.choices[0].message.content
        except Exception:
            logger.exception("Intent classification request failed")
            return Intent(
                kind=IntentKind.UNCLEAR,
                confidence=FALLBACK_CONFIDENCE,
                reasoning=FALLBACK_REASON,
            )

        if not response_text:
            return Intent(
                kind=IntentKind.UNCLEAR,
                confidence=FALLBACK_CONFIDENCE,
                reasoning="No response from classifier",
            )

        return self._parse_response(response_text)
