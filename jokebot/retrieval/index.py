"""
Similarity index over the joke corpus using a TF-IDF FAISS index.

Vectors are L2-normalized and stored in an inner-product index, so the
scores returned by ``search`` are cosine similarities (higher is better).
"""

from __future__ import annotations

import logging
import math
import re
import threading
from collections import Counter
from collections.abc import Mapping
from typing import Any

import faiss  # type: ignore
import numpy as np

from jokebot.core.errors import IndexNotInitializedError
from jokebot.retrieval.corpus import Difficulty, Joke, JokeCorpus


logger = logging.getLogger("jokebot.index")

FILTERABLE_FIELDS = ("category", "difficulty", "language")


class JokeIndex:
    """
    Read-only similarity search over a ``JokeCorpus``.

    ``initialize`` builds the index at most once, even when several threads
    race on first use. After that the index is never mutated and is safe
    for concurrent searches.
    """

    def __init__(self, corpus: JokeCorpus) -> None:
        self.corpus = corpus
        self._lock = threading.Lock()
        self._ready = False
        self._vocabulary: dict[str, int] = {}
        self._idf: np.ndarray = np.array([], dtype=np.float32)
        self._index: faiss.Index | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """Build the TF-IDF vectors and FAISS index. Idempotent."""
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            self._build()
            self._ready = True
        logger.info("Joke index initialized with %d jokes", len(self.corpus))

    def _build(self) -> None:
        documents = [_tokenize(_document_text(joke)) for joke in self.corpus]
        if not documents:
            return

        document_frequency: Counter[str] = Counter()
        for tokens in documents:
            document_frequency.update(set(tokens))

        vocabulary = sorted(document_frequency)
        self._vocabulary = {token: idx for idx, token in enumerate(vocabulary)}
        total = len(documents)
        self._idf = np.array(
            [math.log((1 + total) / (1 + document_frequency[token])) + 1.0 for token in vocabulary],
            dtype=np.float32,
        )

        matrix = np.zeros((total, len(vocabulary)), dtype=np.float32)
        for row, tokens in enumerate(documents):
            matrix[row] = self._weights(tokens)
        faiss.normalize_L2(matrix)

        index = faiss.IndexFlatIP(len(vocabulary))
        index.add(matrix)
        self._index = index

    def _weights(self, tokens: list[str]) -> np.ndarray:
        vector = np.zeros(len(self._vocabulary), dtype=np.float32)
        if not tokens:
            return vector
        for token, count in Counter(tokens).items():
            idx = self._vocabulary.get(token)
            if idx is None:
                continue
            vector[idx] = (count / len(tokens)) * self._idf[idx]
        return vector

    def _vectorize_query(self, text: str) -> np.ndarray | None:
        if not text.strip() or not self._vocabulary:
            return None
        vector = self._weights(_tokenize(text))
        if not vector.any():
            return None
        query = vector.reshape(1, -1)
        faiss.normalize_L2(query)
        return query

    def search(
        self,
        query: str,
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[Joke, float]]:
        """
        Rank jokes by similarity to ``query``.

        Args:
            query: Free-text query.
            k: Maximum number of results.
            filter: Exact-match metadata filter on category, difficulty or language.

        Returns:
            ``(joke, score)`` pairs sorted by descending score. A query with no
            known terms scores every candidate 0.0, in corpus order.

        Raises:
            IndexNotInitializedError: If ``initialize`` has not completed.
        """
        if not self._ready:
            raise IndexNotInitializedError("Joke index not initialized. Call initialize() first.")

        candidates = [
            position for position, joke in enumerate(self.corpus)
            if _matches(joke, filter)
        ]
        if k <= 0 or not candidates:
            return []

        query_vector = self._vectorize_query(query)
        if query_vector is None or self._index is None:
            return [(self.corpus[position], 0.0) for position in candidates[:k]]

        allowed = set(candidates)
        scores, indices = self._index.search(query_vector, len(self.corpus))
        results: list[tuple[Joke, float]] = []
        for idx, score in zip(indices[0], scores[0]):
            position = int(idx)
            if position < 0 or position not in allowed:
                continue
            results.append((self.corpus[position], float(score)))
            if len(results) >= k:
                break
        return results

    def search_by_category(self, category: str, k: int = 2) -> list[Joke]:
        return [joke for joke, _ in self.search("", k, filter={"category": category})]

    def search_by_difficulty(self, difficulty: Difficulty | str, k: int = 2) -> list[Joke]:
        value = difficulty.value if isinstance(difficulty, Difficulty) else difficulty
        return [joke for joke, _ in self.search("", k, filter={"difficulty": value})]


def build_index(corpus: JokeCorpus) -> JokeIndex:
    """Create and initialize an index; the explicit startup phase for retrieval."""
    index = JokeIndex(corpus)
    index.initialize()
    return index


def _matches(joke: Joke, filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    for key, expected in filter.items():
        if key not in FILTERABLE_FIELDS:
            raise ValueError(f"Unsupported filter field: {key}")
        actual = joke.metadata[key]
        if isinstance(expected, Difficulty):
            expected = expected.value
        if actual != expected:
            return False
    return True


def _document_text(joke: Joke) -> str:
    return " ".join([joke.content, joke.category, *sorted(joke.tags)])


def _tokenize(text: str) -> list[str]:
    return re.findall(r"[^\W_]+", text.lower())
