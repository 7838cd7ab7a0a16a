"""
Tests for the phatic/substantive classifier.
"""

import pytest

from replygate.config.schema import ClassifierConfig
from replygate.providers.base import LLMResponse
from replygate.routing.classifier import (
    Classification,
    MessageClassifier,
    parse_label,
    quick_classify,
)

from conftest import FakeProvider

MODEL_ONLY = ClassifierConfig(use_quick_heuristics=False)


class TestQuickClassify:
    """Tests for heuristic classification."""

    @pytest.mark.parametrize("text", ["ok", "OK", "lol", "thanks", "sounds good", "  hey  ", "👍", "😂😂"])
    def test_obvious_phatic(self, text):
        assert quick_classify(text) == Classification.PHATIC

    @pytest.mark.parametrize("text", ["you there?", "ok?", "what time is dinner tonight?"])
    def test_questions_are_substantive(self, text):
        assert quick_classify(text) == Classification.SUBSTANTIVE

    def test_short_non_question(self):
        assert quick_classify("see ya") == Classification.PHATIC

    def test_short_question_word_is_undecided(self):
        assert quick_classify("how come") is None

    def test_longer_message_is_undecided(self):
        assert quick_classify("I got the job at the new place") is None


class TestParseLabel:
    """Tests for strict label validation."""

    @pytest.mark.parametrize("raw,expected", [
        ("phatic", Classification.PHATIC),
        ("Substantive", Classification.SUBSTANTIVE),
        ("  phatic.\n", Classification.PHATIC),
        ('"substantive"', Classification.SUBSTANTIVE),
    ])
    def test_accepted(self, raw, expected):
        assert parse_label(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "maybe", "phatic or substantive", "This is phatic"])
    def test_rejected(self, raw):
        assert parse_label(raw) is None


class TestMessageClassifier:
    """Tests for MessageClassifier."""

    @pytest.mark.asyncio
    async def test_model_label_is_used(self):
        provider = FakeProvider(["phatic"])
        classifier = MessageClassifier(provider, MODEL_ONLY)

        result = await classifier.classify_detailed("I got the job at the new place")

        assert result.classification == Classification.PHATIC
        assert result.method == "model"
        assert result.tokens_used == 42

    @pytest.mark.asyncio
    async def test_temperature_pinned_to_zero(self):
        provider = FakeProvider(["substantive"])
        classifier = MessageClassifier(provider, MODEL_ONLY)

        await classifier.classify("Did you see the game last night")

        call = provider.calls[0]
        assert call["temperature"] == 0.0
        assert call["model"] == MODEL_ONLY.model
        assert "Did you see the game last night" in call["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_provider_exception_defaults_to_substantive(self):
        provider = FakeProvider([RuntimeError("connection reset")])
        classifier = MessageClassifier(provider, MODEL_ONLY)

        result = await classifier.classify_detailed("anything")

        assert result.classification == Classification.SUBSTANTIVE
        assert result.method == "fallback"
        assert "connection reset" in result.error

    @pytest.mark.asyncio
    async def test_error_response_defaults_to_substantive(self):
        provider = FakeProvider([LLMResponse(content="Error: quota", finish_reason="error")])
        classifier = MessageClassifier(provider, MODEL_ONLY)

        assert await classifier.classify("anything") == Classification.SUBSTANTIVE

    @pytest.mark.asyncio
    async def test_unexpected_label_defaults_to_substantive(self):
        provider = FakeProvider(["It is probably phatic"])
        classifier = MessageClassifier(provider, MODEL_ONLY)

        result = await classifier.classify_detailed("anything")

        assert result.classification == Classification.SUBSTANTIVE
        assert result.raw == "It is probably phatic"

    @pytest.mark.asyncio
    async def test_no_provider_defaults_to_substantive(self):
        classifier = MessageClassifier(None, MODEL_ONLY)
        assert await classifier.classify("anything") == Classification.SUBSTANTIVE

    @pytest.mark.asyncio
    async def test_heuristics_skip_model_call(self):
        provider = FakeProvider()
        classifier = MessageClassifier(provider)

        result = await classifier.classify_detailed("lol")

        assert result.classification == Classification.PHATIC
        assert result.method == "heuristic"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_statistics(self):
        classifier = MessageClassifier(FakeProvider(["phatic"]))
        await classifier.classify("ok")
        await classifier.classify("I got the job at the new place")

        stats = classifier.get_statistics()
        assert stats["heuristic:phatic"] == 1
        assert stats["model:phatic"] == 1


class TestSimpleResponse:
    """Tests for the phatic reply path."""

    @pytest.mark.asyncio
    async def test_uses_style_guide(self):
        provider = FakeProvider(["haha yeah  "])
        classifier = MessageClassifier(provider)

        reply = await classifier.get_simple_response("lol", "Lowercase, short.")

        assert reply.response == "haha yeah"
        assert reply.tokens_used == 42
        system = provider.calls[0]["messages"][0]
        assert system["role"] == "system"
        assert "Lowercase, short." in system["content"]
        assert provider.calls[0]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        classifier = MessageClassifier(FakeProvider([RuntimeError("down")]))
        with pytest.raises(RuntimeError):
            await classifier.get_simple_response("lol", "guide")

    @pytest.mark.asyncio
    async def test_error_response_raises(self):
        classifier = MessageClassifier(FakeProvider([LLMResponse(content=None, finish_reason="error")]))
        with pytest.raises(RuntimeError):
            await classifier.get_simple_response("lol", "guide")
