"""
Tests for intent classification.

These tests verify:
- Keyword classification per stage
- Name extraction
- Deterministic behavior
- Groq output parsing and failure fallbacks
"""

from __future__ import annotations

import json
import os

import pytest

from jokebot.agents.intent import (
    Intent,
    IntentKind,
    KeywordIntentClassifier,
    extract_name,
)
from jokebot.agents.llm_intent import FALLBACK_CONFIDENCE, GroqIntentClassifier
from jokebot.orchestration.state import Stage

from doubles import fake_groq_client


@pytest.fixture
def classifier() -> KeywordIntentClassifier:
    return KeywordIntentClassifier()


def verdict(**fields) -> str:
    return json.dumps({"confidence": 0.9, "reasoning": "test", **fields})


class TestIntent:
    """Tests for the Intent value."""

    def test_confidence_clamped(self) -> None:
        assert Intent(kind=IntentKind.WANT_JOKE, confidence=1.7).confidence == 1.0
        assert Intent(kind=IntentKind.WANT_JOKE, confidence=-0.2).confidence == 0.0

    def test_blank_name_is_none(self) -> None:
        assert Intent(kind=IntentKind.PROVIDE_NAME, extracted_name="   ").extracted_name is None

    def test_to_dict(self) -> None:
        data = Intent(kind=IntentKind.PROVIDE_NAME, confidence=0.8, extracted_name=" Ann ").to_dict()
        assert data == {
            "intent": "provide_name",
            "confidence": 0.8,
            "extracted_name": "Ann",
            "reasoning": None,
        }


class TestKeywordClassifier:
    """Tests for the keyword classifier."""

    @pytest.mark.parametrize("utterance", ["yes", "Yeah!", "sure, go ahead", "one more please", "так", "давай ще"])
    def test_want_joke(self, classifier: KeywordIntentClassifier, utterance: str) -> None:
        """Test affirmative replies in joke stages."""
        intent = classifier.classify(utterance, stage=Stage.ASKING_FOR_MORE)
        assert intent.kind is IntentKind.WANT_JOKE

    @pytest.mark.parametrize("utterance", ["no", "No thanks", "not now", "I'm good", "ні", "enough jokes"])
    def test_dont_want_joke(self, classifier: KeywordIntentClassifier, utterance: str) -> None:
        """Test refusals win over affirmative words."""
        intent = classifier.classify(utterance, stage=Stage.ASKING_FOR_MORE)
        assert intent.kind is IntentKind.DONT_WANT_JOKE

    def test_farewell(self, classifier: KeywordIntentClassifier) -> None:
        intent = classifier.classify("bye!", stage=Stage.ASKING_FOR_MORE)
        assert intent.kind is IntentKind.FAREWELL

    @pytest.mark.parametrize(("utterance", "kind"), [
        ("why not", IntentKind.WANT_JOKE),
        ("sure, no problem", IntentKind.WANT_JOKE),
        ("of course!", IntentKind.WANT_JOKE),
        ("I have to go, bye", IntentKind.FAREWELL),
        ("gotta go, goodbye", IntentKind.FAREWELL),
    ])
    def test_phrases_win_over_single_words(
        self, classifier: KeywordIntentClassifier, utterance: str, kind: IntentKind
    ) -> None:
        """Test multi-word phrases are not misread by a negative word inside them."""
        intent = classifier.classify(utterance, stage=Stage.ASKING_FOR_MORE)
        assert intent.kind is kind

    def test_unclear(self, classifier: KeywordIntentClassifier) -> None:
        """Test unknown input is unclear with low confidence."""
        intent = classifier.classify("purple elephant", stage=Stage.ASKING_FOR_JOKE)
        assert intent.kind is IntentKind.UNCLEAR
        assert intent.confidence < 0.5

    def test_empty_is_unclear(self, classifier: KeywordIntentClassifier) -> None:
        assert classifier.classify("   ", stage=Stage.ASKING_FOR_JOKE).kind is IntentKind.UNCLEAR

    @pytest.mark.parametrize("utterance", ["hello", "hello again", "Hi there", "привіт"])
    def test_greeting_after_end(self, classifier: KeywordIntentClassifier, utterance: str) -> None:
        """Test greetings are recognized once the conversation ended."""
        intent = classifier.classify(utterance, stage=Stage.CONVERSATION_ENDED)
        assert intent.kind is IntentKind.GREETING

    @pytest.mark.parametrize(("utterance", "name"), [
        ("Kostya", "Kostya"),
        ("My name is Ann", "Ann"),
        ("Hi, I'm Bob", "Bob"),
        ("call me Mary Jane", "Mary Jane"),
        ("Мене звуть Олена", "Олена"),
    ])
    def test_provide_name(self, classifier: KeywordIntentClassifier, utterance: str, name: str) -> None:
        """Test names are extracted while waiting for one."""
        intent = classifier.classify(utterance, stage=Stage.WAITING_FOR_NAME)
        assert intent.kind is IntentKind.PROVIDE_NAME
        assert intent.extracted_name == name

    def test_bare_greeting_is_not_a_name(self, classifier: KeywordIntentClassifier) -> None:
        intent = classifier.classify("hi", stage=Stage.WAITING_FOR_NAME)
        assert intent.kind is IntentKind.GREETING
        assert intent.extracted_name is None

    @pytest.mark.parametrize("utterance", ["Hello there", "hey everyone!", "hi again"])
    def test_greeting_with_filler_is_not_a_name(
        self, classifier: KeywordIntentClassifier, utterance: str
    ) -> None:
        """Test greetings padded with filler words are not taken as names."""
        intent = classifier.classify(utterance, stage=Stage.WAITING_FOR_NAME)
        assert intent.kind is IntentKind.GREETING
        assert intent.extracted_name is None

    def test_greeting_followed_by_name(self, classifier: KeywordIntentClassifier) -> None:
        """Test a name after a greeting word is still extracted."""
        intent = classifier.classify("Hey Ann", stage=Stage.WAITING_FOR_NAME)
        assert intent.kind is IntentKind.PROVIDE_NAME
        assert intent.extracted_name == "Ann"

    def test_deterministic(self, classifier: KeywordIntentClassifier) -> None:
        """Test the same input classifies the same way."""
        results = [classifier.classify("sure, tell me one", stage=Stage.ASKING_FOR_JOKE) for _ in range(3)]
        assert all(result == results[0] for result in results)


class TestExtractName:
    """Tests for the name extraction helper."""

    def test_long_reply_truncated_to_two_words(self) -> None:
        assert extract_name("I am Alexander the Great of Macedon") == "Alexander the"

    def test_blank(self) -> None:
        assert extract_name("   ") is None
        assert extract_name("?!") is None

    def test_punctuation_stripped(self) -> None:
        assert extract_name("It's Ann!") == "Ann"


class TestGroqParsing:
    """Tests for Groq classifier output handling with a fake client."""

    def make(self, content: str | None = None, error: Exception | None = None):
        client = fake_groq_client(content, error)
        return GroqIntentClassifier(client=client, history_window=5), client

    def test_valid_verdict(self) -> None:
        """Test a well-formed verdict is returned as-is."""
        classifier, _ = self.make(verdict(intent="want_joke"))
        intent = classifier.classify("sure", stage=Stage.ASKING_FOR_JOKE)
        assert intent.kind is IntentKind.WANT_JOKE
        assert intent.confidence == 0.9

    def test_fenced_json(self) -> None:
        """Test markdown code fences are stripped."""
        classifier, _ = self.make("```json\n" + verdict(intent="farewell") + "\n```")
        assert classifier.classify("bye").kind is IntentKind.FAREWELL

    def test_camel_case_name(self) -> None:
        classifier, _ = self.make(verdict(intent="provide_name", extractedName="Ann"))
        intent = classifier.classify("Ann", stage=Stage.WAITING_FOR_NAME)
        assert intent.extracted_name == "Ann"

    def test_null_name(self) -> None:
        classifier, _ = self.make(verdict(intent="provide_name", extracted_name="null"))
        assert classifier.classify("hmm").extracted_name is None

    @pytest.mark.parametrize("content", [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"confidence": 0.9}),
        verdict(intent="dance"),
    ])
    def test_bad_output_is_unclear(self, content: str) -> None:
        """Test unusable output falls back to unclear."""
        classifier, _ = self.make(content)
        intent = classifier.classify("yes")
        assert intent.kind is IntentKind.UNCLEAR
        assert intent.confidence == FALLBACK_CONFIDENCE

    def test_api_error_is_unclear(self) -> None:
        classifier, _ = self.make(error=RuntimeError("rate limited"))
        intent = classifier.classify("yes")
        assert intent.kind is IntentKind.UNCLEAR
        assert intent.confidence == FALLBACK_CONFIDENCE

    def test_empty_response_is_unclear(self) -> None:
        classifier, _ = self.make("")
        assert classifier.classify("yes").kind is IntentKind.UNCLEAR

    def test_empty_message_skips_request(self) -> None:
        classifier, client = self.make(verdict(intent="want_joke"))
        assert classifier.classify("  ").kind is IntentKind.UNCLEAR
        assert client.calls == []

    def test_request_is_deterministic_and_windowed(self) -> None:
        """Test temperature 0 and only the last five utterances are sent."""
        classifier, client = self.make(verdict(intent="want_joke"))
        history = [f"h{i}" for i in range(10)]

        classifier.classify("yes", history=history, stage=Stage.ASKING_FOR_MORE, user_name="Ann")

        request = client.calls[0]
        assert request["temperature"] == 0.0
        prompt = request["messages"][1]["content"]
        assert "- h9" in prompt
        assert "- h5" in prompt
        assert "- h4" not in prompt
        assert "STAGE: asking_for_more" in prompt
        assert "USER NAME: Ann" in prompt

    def test_configured_temperature_sent(self) -> None:
        """Test a non-default temperature reaches the request."""
        client = fake_groq_client(verdict(intent="want_joke"))
        classifier = GroqIntentClassifier(client=client, temperature=0.2)

        classifier.classify("yes", stage=Stage.ASKING_FOR_MORE)

        assert client.calls[0]["temperature"] == 0.2

    def test_missing_key_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        with pytest.raises(ValueError):
            GroqIntentClassifier()


# Skip live tests if no API key is available
needs_api_key = pytest.mark.skipif(
    not os.getenv("GROQ_API_KEY"),
    reason="GROQ_API_KEY environment variable not set"
)


@needs_api_key
class TestGroqLive:
    """Live classification against the Groq API."""

    @pytest.fixture
    def agent(self) -> GroqIntentClassifier:
        return GroqIntentClassifier()

    def test_clear_yes(self, agent: GroqIntentClassifier) -> None:
        intent = agent.classify("Yes, tell me one!", stage=Stage.ASKING_FOR_JOKE, user_name="Ann")
        assert intent.kind is IntentKind.WANT_JOKE

    def test_name(self, agent: GroqIntentClassifier) -> None:
        intent = agent.classify("I'm Kostya", stage=Stage.WAITING_FOR_NAME)
        assert intent.kind is IntentKind.PROVIDE_NAME
        assert intent.extracted_name == "Kostya"
