"""
Joke Corpus - Static, read-only collection of jokes with metadata.

The corpus is loaded once at startup. When the configured source is
missing or unusable, the built-in jokes below are used instead so the
bot can always start.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from jokebot.core.errors import CorpusError


logger = logging.getLogger("jokebot.corpus")


class Difficulty(str, Enum):
    """How much background a joke assumes."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class Joke:
    """
    A single corpus record.

    ``content`` doubles as the identity key: there is no surrogate id, and
    recency tracking compares trimmed content strings.
    """
    content: str
    category: str
    difficulty: Difficulty = Difficulty.EASY
    tags: frozenset[str] = field(default_factory=frozenset)
    language: str = "english"

    @property
    def key(self) -> str:
        return self.content.strip()

    @property
    def metadata(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "difficulty": self.difficulty.value,
            "tags": sorted(self.tags),
            "language": self.language,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to the ``{content, metadata}`` record shape."""
        return {"content": self.content, "metadata": self.metadata}

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Joke":
        """
        Build a joke from a ``{content, metadata}`` record.

        Raises:
            CorpusError: If the record is missing content or has bad metadata.
        """
        if not isinstance(record, Mapping):
            raise CorpusError("Joke record is not an object")

        content = record.get("content")
        if not isinstance(content, str) or not content.strip():
            raise CorpusError("Joke record has no content")

        metadata = record.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise CorpusError("Joke metadata is not an object")

        try:
            difficulty = Difficulty(str(metadata.get("difficulty", "easy")).lower())
        except ValueError as exc:
            raise CorpusError(f"Unknown difficulty: {metadata.get('difficulty')!r}") from exc

        tags = metadata.get("tags") or []
        if isinstance(tags, str) or not isinstance(tags, Iterable):
            raise CorpusError("Joke tags must be a list of strings")

        return cls(
            content=content.strip(),
            category=str(metadata.get("category") or "general"),
            difficulty=difficulty,
            tags=frozenset(str(tag) for tag in tags),
            language=str(metadata.get("language") or "english"),
        )


class JokeCorpus:
    """Immutable, ordered collection of jokes."""

    def __init__(self, jokes: Iterable[Joke]) -> None:
        unique: dict[str, Joke] = {}
        for joke in jokes:
            unique.setdefault(joke.key, joke)
        self._jokes = tuple(unique.values())

    def __len__(self) -> int:
        return len(self._jokes)

    def __iter__(self) -> Iterator[Joke]:
        return iter(self._jokes)

    def __getitem__(self, position: int) -> Joke:
        return self._jokes[position]

    @property
    def jokes(self) -> tuple[Joke, ...]:
        return self._jokes

    @property
    def categories(self) -> list[str]:
        """Distinct categories in corpus order."""
        return list(dict.fromkeys(joke.category for joke in self._jokes))

    def by_category(self, category: str) -> list[Joke]:
        return [joke for joke in self._jokes if joke.category == category]


# ============================================================================
# Built-in corpus
# ============================================================================

DEFAULT_JOKES: tuple[Joke, ...] = (
    Joke(
        content="Why don't programmers like nature? It has too many bugs! 🐛",
        category="programming",
        difficulty=Difficulty.EASY,
        tags=frozenset({"bugs", "nature", "programming"}),
    ),
    Joke(
        content="What did one byte say to the other? Nothing, they just exchanged bits! 💾",
        category="programming",
        difficulty=Difficulty.MEDIUM,
        tags=frozenset({"bytes", "bits", "communication"}),
    ),
    Joke(
        content="Why do computers never get sick? Because they have antivirus! 🦠",
        category="programming",
        difficulty=Difficulty.EASY,
        tags=frozenset({"computers", "antivirus", "health"}),
    ),
    Joke(
        content="What do you call a programmer who doesn't drink coffee? Off duty! ☕",
        category="programming",
        difficulty=Difficulty.EASY,
        tags=frozenset({"coffee", "programmer", "work"}),
    ),
    Joke(
        content="Why did JavaScript break up with HTML? They couldn't find a common DOM! 🌐",
        category="web-development",
        difficulty=Difficulty.HARD,
        tags=frozenset({"javascript", "html", "dom", "relationships"}),
    ),
    Joke(
        content="What does a programmer do when they can't sleep? Count sheep in a while loop! 🐑",
        category="programming",
        difficulty=Difficulty.MEDIUM,
        tags=frozenset({"sleep", "loops", "while", "sheep"}),
    ),
    Joke(
        content="Why do programmers mix up Christmas and Halloween? Because Oct 31 = Dec 25! 🎃🎄",
        category="programming",
        difficulty=Difficulty.HARD,
        tags=frozenset({"octal", "decimal", "holidays", "math"}),
    ),
    Joke(
        content="How many programmers does it take to change a light bulb? None, that's a hardware problem!",
        category="programming",
        difficulty=Difficulty.MEDIUM,
        tags=frozenset({"hardware", "software", "lightbulb"}),
    ),
    Joke(
        content="Why do programmers always confuse Christmas and Halloween? Because Oct 31 == Dec 25!",
        category="programming",
        difficulty=Difficulty.HARD,
        tags=frozenset({"octal", "decimal", "comparison"}),
    ),
    Joke(
        content="What is recursion? To understand recursion, you first have to understand recursion.",
        category="programming",
        difficulty=Difficulty.MEDIUM,
        tags=frozenset({"recursion", "definition", "loop"}),
    ),
)


def default_corpus() -> JokeCorpus:
    """Return the built-in corpus."""
    return JokeCorpus(DEFAULT_JOKES)


def parse_records(data: Any) -> list[Joke]:
    """
    Parse a decoded JSON document into jokes.

    Accepts either a list of records or an object with a ``jokes`` list.
    Invalid records are skipped with a warning.
    """
    if isinstance(data, Mapping):
        data = data.get("jokes")
    if not isinstance(data, list):
        raise CorpusError("Corpus must be a list of joke records")

    jokes: list[Joke] = []
    for position, record in enumerate(data):
        try:
            jokes.append(Joke.from_dict(record))
        except CorpusError as exc:
            logger.warning("Skipping corpus record %d: %s", position, exc)
    return jokes


def load_corpus(path: Path | str | None = None) -> JokeCorpus:
    """
    Load the joke corpus from a JSON file.

    Args:
        path: Location of the corpus file. ``None`` selects the built-in jokes.

    Returns:
        The loaded corpus, or the built-in corpus if the file is missing,
        unreadable, malformed, or contains no valid records.
    """
    if path is None:
        return default_corpus()

    path = Path(path)
    if not path.exists():
        logger.warning("Corpus file %s not found; using built-in jokes", path)
        return default_corpus()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        jokes = parse_records(data)
    except (OSError, json.JSONDecodeError, CorpusError) as exc:
        logger.warning("Failed to load corpus from %s (%s); using built-in jokes", path, exc)
        return default_corpus()

    if not jokes:
        logger.warning("Corpus file %s has no valid jokes; using built-in jokes", path)
        return default_corpus()

    logger.info("Loaded %d jokes from %s", len(jokes), path)
    return JokeCorpus(jokes)
