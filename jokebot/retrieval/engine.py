"""
Retrieval Engine - Three-tier joke retrieval with exclusion filtering.

Tiers run in order and stop at the first one that yields results:

1. semantic: similarity search with a score threshold
2. category: jokes from the user's preferred category
3. random: a uniform shuffle of the corpus

Recently shown jokes are excluded in every tier. Only the random tier may
relax the exclusion, and only when it would otherwise return nothing.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from jokebot.core.config import RetrievalConfig
from jokebot.core.errors import IndexNotInitializedError
from jokebot.retrieval.corpus import Joke, JokeCorpus


logger = logging.getLogger("jokebot.retrieval")


class SimilaritySearch(Protocol):
    """Similarity search collaborator (see ``JokeIndex``)."""

    @property
    def ready(self) -> bool: ...

    def search(
        self,
        query: str,
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[Joke, float]]: ...


class RetrievalTier(str, Enum):
    SEMANTIC = "semantic"
    CATEGORY = "category"
    RANDOM = "random"
    NONE = "none"


@dataclass
class Retrieval:
    """Jokes returned by one retrieval call and the tier that produced them."""
    jokes: list[Joke] = field(default_factory=list)
    tier: RetrievalTier = RetrievalTier.NONE
    relaxed: bool = False


class RetrievalEngine:
    """
    Select jokes for a query using the semantic → category → random fallback.

    The engine holds no per-conversation state; exclusions are passed in
    with each call, so one engine can serve many conversations at once.
    """

    def __init__(
        self,
        index: SimilaritySearch,
        corpus: JokeCorpus,
        config: RetrievalConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._index = index
        self._corpus = corpus
        self._config = config or RetrievalConfig()
        self._rng = rng or random.Random()

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    def retrieve(
        self,
        query: str,
        excluded: Iterable[str] = (),
        preferred_category: str | None = None,
        k: int | None = None,
    ) -> list[Joke]:
        """Return up to ``k`` jokes, most relevant first."""
        return self.retrieve_with_tier(query, excluded, preferred_category, k).jokes

    def retrieve_with_tier(
        self,
        query: str,
        excluded: Iterable[str] = (),
        preferred_category: str | None = None,
        k: int | None = None,
    ) -> Retrieval:
        """
        Run the fallback chain and report which tier answered.

        Raises:
            IndexNotInitializedError: If the similarity index is not ready.
        """
        if not self._index.ready:
            raise IndexNotInitializedError("Retrieval invoked before the joke index was initialized")
        if k is not None and k <= 0:
            return Retrieval()

        excluded_keys = {item.strip() for item in excluded}

        jokes = self._semantic_tier(query, excluded_keys, k if k is not None else self._config.semantic_k)
        if jokes:
            logger.debug("Semantic tier returned %d jokes for %r", len(jokes), query)
            return Retrieval(jokes=jokes, tier=RetrievalTier.SEMANTIC)

        fallback_k = k if k is not None else self._config.fallback_k
        if preferred_category:
            jokes = self._category_tier(query, preferred_category, excluded_keys, fallback_k)
            if jokes:
                logger.info("Fell back to category search: %s", preferred_category)
                return Retrieval(jokes=jokes, tier=RetrievalTier.CATEGORY)

        jokes, relaxed = self._random_tier(excluded_keys, fallback_k)
        if not jokes:
            return Retrieval()
        logger.info("Fell back to random jokes (relaxed=%s)", relaxed)
        return Retrieval(jokes=jokes, tier=RetrievalTier.RANDOM, relaxed=relaxed)

    def _semantic_tier(self, query: str, excluded: set[str], k: int) -> list[Joke]:
        if not query.strip():
            return []
        wanted = max(self._config.candidate_multiplier * k, self._config.min_candidates)
        scored = self._search(RetrievalTier.SEMANTIC, query, wanted)
        candidates = [
            joke for joke, score in scored
            if score >= self._config.score_threshold
        ]
        return _take(candidates, excluded, k)

    def _category_tier(self, query: str, category: str, excluded: set[str], k: int) -> list[Joke]:
        scored = self._search(
            RetrievalTier.CATEGORY,
            query,
            max(len(self._corpus), k),
            filter={"category": category},
        )
        return _take((joke for joke, _ in scored), excluded, k)

    def _random_tier(self, excluded: set[str], k: int) -> tuple[list[Joke], bool]:
        pool = list(self._corpus)
        self._rng.shuffle(pool)
        jokes = _take(pool, excluded, k)
        if jokes or not pool:
            return jokes, False
        # Every joke was excluded; repeating beats leaving the user empty-handed.
        return _take(pool, set(), k), True

    def _search(
        self,
        tier: RetrievalTier,
        query: str,
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[Joke, float]]:
        try:
            return self._index.search(query, k, filter=filter)
        except IndexNotInitializedError:
            raise
        except Exception:
            logger.exception("Similarity search failed in %s tier; treating as no results", tier.value)
            return []


def _take(jokes: Iterable[Joke], excluded: set[str], k: int) -> list[Joke]:
    """Drop excluded and duplicate jokes, keeping order, up to ``k``."""
    selected: list[Joke] = []
    seen: set[str] = set()
    for joke in jokes:
        if len(selected) >= k:
            break
        if joke.key in excluded or joke.key in seen:
            continue
        seen.add(joke.key)
        selected.append(joke)
    return selected
