"""
Shared fixtures for the joke bot tests.
"""

from __future__ import annotations

import pytest

from jokebot.retrieval.corpus import Difficulty, Joke, JokeCorpus, default_corpus


@pytest.fixture
def corpus() -> JokeCorpus:
    """The built-in joke corpus."""
    return default_corpus()


@pytest.fixture
def two_jokes() -> JokeCorpus:
    """A corpus of exactly two jokes in different categories."""
    return JokeCorpus([
        Joke(
            content="Why did the developer go broke? Because he used up all his cache.",
            category="programming",
            difficulty=Difficulty.EASY,
            tags=frozenset({"cache", "money"}),
        ),
        Joke(
            content="Why do Java developers wear glasses? Because they don't C#.",
            category="languages",
            difficulty=Difficulty.MEDIUM,
            tags=frozenset({"java", "csharp"}),
        ),
    ])
