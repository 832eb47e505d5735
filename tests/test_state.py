"""
Tests for conversation state and recency memory.
"""

from __future__ import annotations

import pytest

from jokebot.orchestration.state import ConversationState, Message, Stage, UserPreferences
from jokebot.retrieval.corpus import JokeCorpus
from jokebot.retrieval.recency import RECENT_JOKES_CAPACITY, RecencyMemory


class TestConversationState:
    """Tests for ConversationState dataclass."""

    def test_initial_state(self) -> None:
        """Test default state values."""
        state = ConversationState()
        assert state.stage is Stage.GREETING
        assert state.user_name == ""
        assert state.jokes_count == 0
        assert state.messages == []
        assert state.recent_jokes == []
        assert state.retrieved_context == []
        assert state.user_preferences.preferred_joke_category is None
        assert state.last_reply is None

    def test_last_reply(self) -> None:
        """Test last_reply returns the latest assistant message."""
        state = ConversationState(messages=[
            Message(role="assistant", content="first"),
            Message(role="user", content="hi"),
            Message(role="assistant", content="second"),
            Message(role="user", content="yes"),
        ])
        assert state.last_reply == "second"

    def test_messages_get_ids(self) -> None:
        """Test every message gets a distinct id."""
        first = Message(role="user", content="a")
        second = Message(role="user", content="a")
        assert first.id and second.id
        assert first.id != second.id

    def test_round_trip(self, corpus: JokeCorpus) -> None:
        """Test to_dict and from_dict preserve the state."""
        state = ConversationState(
            messages=[Message(role="user", content="Hi", id="m1")],
            stage=Stage.ASKING_FOR_MORE,
            user_name="Ann",
            jokes_count=2,
            last_query="yes",
            retrieved_context=[corpus[0]],
            user_preferences=UserPreferences(preferred_joke_category="programming"),
            conversation_history=["Hi", "Ann", "yes"],
            recent_jokes=[corpus[0].content, corpus[1].content],
        )

        restored = ConversationState.from_dict(state.to_dict())

        assert restored == state

    def test_unknown_stage_loads_as_greeting(self) -> None:
        """Test a persisted stage outside the enum loads as greeting."""
        restored = ConversationState.from_dict({"stage": "dancing", "user_name": "Ann"})
        assert restored.stage is Stage.GREETING
        assert restored.user_name == "Ann"

    def test_recent_jokes_trimmed_on_load(self) -> None:
        """Test an oversized recency window keeps only the newest entries."""
        recent = [f"joke {i}" for i in range(8)]
        restored = ConversationState.from_dict({"stage": "asking_for_more", "recent_jokes": recent})
        assert restored.recent_jokes == recent[-RECENT_JOKES_CAPACITY:]

    def test_negative_count_clamped_on_load(self) -> None:
        """Test a negative jokes count loads as zero."""
        restored = ConversationState.from_dict({"jokes_count": -3})
        assert restored.jokes_count == 0


class TestStage:
    """Tests for stage parsing."""

    @pytest.mark.parametrize("stage", list(Stage))
    def test_parse_known(self, stage: Stage) -> None:
        """Test every stage parses from its value and from itself."""
        assert Stage.parse(stage.value) is stage
        assert Stage.parse(stage) is stage

    @pytest.mark.parametrize("value", ["", "GREETING", "corrupted", None, 3])
    def test_parse_unknown(self, value: object) -> None:
        """Test unrecognized values parse as None."""
        assert Stage.parse(value) is None


class TestRecencyMemory:
    """Tests for the bounded recency window."""

    def test_evicts_oldest(self) -> None:
        """Test recording past capacity drops the oldest entries."""
        memory = RecencyMemory()
        memory.record([f"j{i}" for i in range(7)])
        assert len(memory) == RECENT_JOKES_CAPACITY
        assert memory.items() == ["j2", "j3", "j4", "j5", "j6"]
        assert "j0" not in memory

    def test_contains_trims(self) -> None:
        """Test identities are compared after trimming."""
        memory = RecencyMemory(["  a joke  "])
        assert memory.contains("a joke")
        assert "a joke  " in memory

    def test_items_is_snapshot(self) -> None:
        """Test items() returns a copy."""
        memory = RecencyMemory(["a"])
        items = memory.items()
        items.append("b")
        assert memory.items() == ["a"]

    def test_clear(self) -> None:
        """Test clear empties the window."""
        memory = RecencyMemory(["a", "b"])
        memory.clear()
        assert len(memory) == 0
        assert list(memory) == []

    def test_custom_capacity(self) -> None:
        memory = RecencyMemory(["a", "b", "c"], capacity=2)
        assert memory.items() == ["b", "c"]

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RecencyMemory(capacity=0)
