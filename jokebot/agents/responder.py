"""
Reply generation - Turn a controller decision into user-facing text.

The controller decides *what* to say (``ReplyKind`` plus context); a
``ReplyGenerator`` decides *how* to say it. ``TemplateReplyGenerator`` is
deterministic and offline, ``GroqReplyGenerator`` composes replies with an
LLM and falls back to the templates for fixed prompts.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from groq import Groq

from jokebot.core.errors import GenerationError
from jokebot.orchestration.state import Stage
from jokebot.retrieval.corpus import Joke


logger = logging.getLogger("jokebot.responder")

# Shown when generation fails; the stage does not advance on this path
FALLBACK_APOLOGY = "Sorry, something went wrong on my side 😅 Please try again!"

DEFAULT_NAME = "friend"
MAX_MESSAGE_LENGTH = 2000


class ReplyKind(str, Enum):
    """What the reply has to accomplish."""

    NAME_REQUEST = "name_request"
    NAME_RETRY = "name_retry"
    JOKE_OFFER = "joke_offer"
    JOKE = "joke"
    NO_JOKES = "no_jokes"
    DECLINED = "declined"
    CLARIFY = "clarify"
    FAREWELL = "farewell"
    RESTART_HINT = "restart_hint"
    RESTART = "restart"
    RESET = "reset"


@dataclass
class ReplyContext:
    """
    Structured input for reply generation.

    Attributes:
        kind: The reply to produce.
        stage: Stage the conversation is in when the reply is shown.
        user_name: Known user name (may be empty).
        utterance: The user message being answered.
        jokes: Retrieved jokes, most relevant first.
        jokes_count: Jokes delivered before this reply.
    """
    kind: ReplyKind
    stage: Stage
    user_name: str = ""
    utterance: str = ""
    jokes: list[Joke] = field(default_factory=list)
    jokes_count: int = 0

    @property
    def display_name(self) -> str:
        return self.user_name or DEFAULT_NAME


class ReplyGenerator(ABC):
    """Produces reply text for a controller decision."""

    @abstractmethod
    def generate(self, context: ReplyContext) -> str:
        """
        Return the reply text.

        Raises:
            GenerationError: If no usable reply could be produced.
        """


class TemplateReplyGenerator(ReplyGenerator):
    """Deterministic English templates; joke replies embed the joke verbatim."""

    def generate(self, context: ReplyContext) -> str:
        name = context.display_name
        kind = context.kind

        if kind is ReplyKind.NAME_REQUEST:
            return "Hi! I'm a joke bot. What's your name? 🤖"
        if kind is ReplyKind.NAME_RETRY:
            return "Please tell me your name! 😊"
        if kind is ReplyKind.JOKE_OFFER:
            return f"Hi, {name}! Nice to meet you! 😊\n\nWould you like to hear a joke? 🎭"
        if kind is ReplyKind.JOKE:
            if not context.jokes:
                raise GenerationError("Joke reply requested without a joke")
            opener = "Here's another joke for you" if context.jokes_count > 0 else "Here's a joke for you"
            return f"{opener}, {name}:\n\n{context.jokes[0].content}\n\nWant another one? 😄"
        if kind is ReplyKind.NO_JOKES:
            return f"Sorry, {name}, I couldn't find a joke this time 😅 Want me to try again?"
        if kind is ReplyKind.DECLINED:
            return f"Okay, {name}! If you change your mind, just say \"yes\"! 😊"
        if kind is ReplyKind.CLARIFY:
            if context.stage is Stage.ASKING_FOR_MORE:
                return f"{name}, say \"yes\" for another joke or \"no\" to finish our chat 🤔"
            return f"{name}, say \"yes\" if you want a joke or \"no\" if you don't 🤔"
        if kind is ReplyKind.FAREWELL:
            plural = "joke" if context.jokes_count == 1 else "jokes"
            return (
                f"Thanks for chatting, {name}! I told you {context.jokes_count} {plural} "
                f"and had a lot of fun. See you! 👋😊"
            )
        if kind is ReplyKind.RESTART_HINT:
            return "Our conversation is over. Say \"hello\" to start again! 😊"
        if kind is ReplyKind.RESTART:
            return "Hello again! Ready for more jokes? What's your name? 🤖"
        if kind is ReplyKind.RESET:
            return "Something went wrong... Let's start over! What's your name? 🤖"

        raise GenerationError(f"No template for reply kind {kind!r}")


# ============================================================================
# Groq generator
# ============================================================================

# Reply kinds composed by the LLM; everything else uses the templates
LLM_REPLY_KINDS = frozenset({
    ReplyKind.NAME_REQUEST,
    ReplyKind.JOKE_OFFER,
    ReplyKind.JOKE,
    ReplyKind.NO_JOKES,
    ReplyKind.FAREWELL,
})


class GroqReplyGenerator(ReplyGenerator):
    """
    Reply generator backed by a Groq chat model.

    Failures are raised as ``GenerationError`` so the controller can answer
    with its fixed apology and keep the conversation where it was.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.7,
        max_tokens: int = 256,
        client: Any | None = None,
        templates: ReplyGenerator | None = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            api_key: Groq API key. If None, reads from GROQ_API_KEY env var.
            model: Groq model name.
            temperature: Sampling temperature; some creativity suits jokes.
            max_tokens: Reply length cap.
            client: Preconfigured chat client (skips API key lookup).
            templates: Generator for the fixed reply kinds.
        """
        if client is None:
            api_key = api_key or os.getenv("GROQ_API_KEY")
            if not api_key:
                raise ValueError("GROQ_API_KEY environment variable is required")
            client = Groq(api_key=api_key)

        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._templates = templates or TemplateReplyGenerator()
        self._system_prompt = self._load_prompt()

    def _load_prompt(self) -> str:
        """Load the persona prompt from the prompts directory."""
        prompt_path = Path(__file__).parent.parent / "prompts" / "joke_bot_persona.md"
        if not prompt_path.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
        return prompt_path.read_text(encoding="utf-8")

    def generate(self, context: ReplyContext) -> str:
        if context.kind not in LLM_REPLY_KINDS:
            return self._templates.generate(context)

        prompt = self._build_prompt(context)
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            text = response.choices[0].message.content
        except Exception as exc:
            raise GenerationError(f"Reply generation failed: {exc}") from exc

        reply = _clean_reply(text or "")
        if not reply:
            raise GenerationError("Empty reply from model")
        return reply

    def _build_prompt(self, context: ReplyContext) -> str:
        utterance = context.utterance
        if len(utterance) > MAX_MESSAGE_LENGTH:
            utterance = utterance[:MAX_MESSAGE_LENGTH] + "... [TRUNCATED]"

        if context.kind is ReplyKind.NAME_REQUEST:
            return (
                "The user's name is unknown. Greet them warmly, introduce yourself "
                "as a joke bot and ask for their name."
            )
        if context.kind is ReplyKind.JOKE_OFFER:
            return (
                f"The user's name is {context.display_name}. Greet them personally, say you "
                "are glad to meet them and offer to tell a joke."
            )
        if context.kind is ReplyKind.FAREWELL:
            return (
                f"Say goodbye to {context.display_name}. You told {context.jokes_count} "
                "jokes. Thank them for the chat and keep it personal."
            )
        if context.kind is ReplyKind.NO_JOKES:
            return (
                f"{context.display_name} asked for a joke (\"{utterance}\") but no "
                "relevant joke was found. Apologize briefly and ask whether to try again."
            )

        jokes_context = "\n".join(
            f"{idx + 1}. {joke.content} (Category: {joke.category}, "
            f"Difficulty: {joke.difficulty.value})"
            for idx, joke in enumerate(context.jokes)
        ) or "No jokes found in the context."
        return (
            f"JOKES CONTEXT:\n{jokes_context}\n\n"
            f"USER NAME: {context.display_name}\n"
            f"USER MESSAGE: \"{utterance}\"\n"
            f"CONVERSATION STAGE: {context.stage.value}\n"
            f"JOKES TOLD SO FAR: {context.jokes_count}\n\n"
            "Tell the first joke from the context, address the user by name and "
            "ask whether they want another one."
        )


def _clean_reply(text: str) -> str:
    """Strip markdown emphasis and wrapping quotes from model output."""
    reply = re.sub(r"\*\*|__|`|^#+\s*", "", text.strip(), flags=re.MULTILINE)
    if len(reply) >= 2 and reply[0] == reply[-1] and reply[0] in "\"'":
        reply = reply[1:-1]
    return reply.strip()
