"""
Message classifier for reply routing.

Labels each inbound message as phatic (acknowledgments, greetings, short
reactions) or substantive (needs contextual knowledge to answer). Uses:
1. Quick heuristics (no model call)
2. A cheap model call with temperature pinned to 0

Any failure or unexpected label resolves to substantive.
"""

import re
import time
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from replygate.config.schema import ClassifierConfig
from replygate.errors import ClassificationFailure
from replygate.providers.base import LLMProvider, LLMResponse


class Classification(str, Enum):
    """Whether a message needs deep context."""
    PHATIC = "phatic"
    SUBSTANTIVE = "substantive"


@dataclass
class ClassificationResult:
    """Result of classifying one message."""
    classification: Classification
    method: str  # "heuristic", "model" or "fallback"
    latency_ms: float = 0.0
    tokens_used: int = 0
    raw: str = ""
    error: str = ""


@dataclass
class SimpleResponse:
    """Direct reply produced on the phatic path."""
    response: str
    tokens_used: int = 0


PHATIC_EXACT = frozenset([
    "ok", "okay", "k", "kk", "lol", "haha", "hahaha", "lmao", "lmfao",
    "yes", "yeah", "yep", "yup", "nope", "no", "nah",
    "thanks", "thx", "ty", "thank you", "thankyou",
    "hi", "hey", "hello", "yo", "sup", "hiya",
    "bye", "cya", "later", "goodnight", "gn", "good night",
    "cool", "nice", "great", "awesome", "perfect", "sounds good",
    "sure", "alright", "aight", "ight", "bet",
    "np", "no problem", "no worries", "nw",
    "omg", "wow", "whoa", "damn", "dang",
    "idk", "idc", "ikr", "imo", "tbh", "ngl",
    "brb", "gtg", "g2g", "ttyl",
])

# First words that turn a short message into a question or request
SUBSTANTIVE_LEADS = frozenset([
    "what", "when", "where", "why", "how", "who",
    "can", "could", "would", "should", "will",
    "did", "do", "does", "have", "has",
])

_TRAILING_NOISE = re.compile(r"^[\s\"'`*.]+|[\s\"'`*.!:]+$")

CLASSIFY_PROMPT = """Classify this chat message as either "phatic" or "substantive":

Phatic: Simple acknowledgments, greetings, or short responses that don't require deep context (e.g., "ok", "lol", "thanks", "hey", "cool", "👍")

Substantive: Messages that ask questions, share information, or require contextual knowledge to respond properly (e.g., "How's work?", "Did you see the game?", "When are we meeting?")

Message: "{message}"

Classification (respond with only "phatic" or "substantive"):"""

SIMPLE_RESPONSE_SYSTEM = """You are responding on behalf of someone. Match their communication style exactly:

{style_guide}

Respond briefly to this simple message. Keep it natural and concise."""


def _is_emoji_only(text: str) -> bool:
    chars = [ch for ch in text if not ch.isspace()]
    if not chars:
        return False
    return all(not ch.isalnum() and ord(ch) >= 0x2000 for ch in chars)


def quick_classify(content: str) -> Classification | None:
    """
    Classify obvious messages without a model call.

    Returns:
        A Classification, or None when the model should decide.
    """
    normalized = content.strip().lower()
    if not normalized:
        return Classification.PHATIC

    if len(normalized) <= 10 and _is_emoji_only(normalized):
        return Classification.PHATIC

    if normalized in PHATIC_EXACT:
        return Classification.PHATIC

    if "?" in normalized:
        return Classification.SUBSTANTIVE

    words = normalized.split()
    if len(words) <= 2 and words[0] not in SUBSTANTIVE_LEADS:
        return Classification.PHATIC

    return None


def parse_label(raw: str | None) -> Classification | None:
    """Match a raw model answer against exactly the two allowed labels."""
    if not raw:
        return None
    label = _TRAILING_NOISE.sub("", raw.strip().lower())
    for classification in Classification:
        if label == classification.value:
            return classification
    return None


class MessageClassifier:
    """
    Phatic/substantive router backed by a cheap model.

    classify() never raises: errors map to substantive.
    """

    def __init__(
        self,
        provider: LLMProvider | None,
        config: ClassifierConfig | None = None,
    ):
        self.provider = provider
        self.config = config or ClassifierConfig()

        self._counts: dict[str, int] = {}

    async def classify(self, content: str) -> Classification:
        """Classify a message; see classify_detailed."""
        return (await self.classify_detailed(content)).classification

    async def classify_detailed(self, content: str) -> ClassificationResult:
        """
        Classify a message and report how the label was reached.

        Args:
            content: Message text.

        Returns:
            ClassificationResult; never raises.
        """
        start = time.time()

        if self.config.use_quick_heuristics:
            quick = quick_classify(content)
            if quick is not None:
                return self._record(ClassificationResult(
                    classification=quick,
                    method="heuristic",
                    latency_ms=(time.time() - start) * 1000,
                ))

        if self.provider is None:
            return self._record(self._fallback(start, "No classifier provider configured"))

        try:
            response = await self._ask_model(content)
        except ClassificationFailure as e:
            logger.warning(f"Classification call failed, defaulting to substantive: {e}")
            return self._record(self._fallback(start, str(e)))

        label = parse_label(response.content)
        if label is None:
            logger.warning(f"Unexpected classification {response.content!r}, defaulting to substantive")
            result = self._fallback(start, "unexpected label")
            result.raw = response.content or ""
            result.tokens_used = response.total_tokens
            return self._record(result)

        latency_ms = (time.time() - start) * 1000
        logger.debug(f"Classification: {label.value} ({latency_ms:.0f}ms, {response.total_tokens} tokens)")
        return self._record(ClassificationResult(
            classification=label,
            method="model",
            latency_ms=latency_ms,
            tokens_used=response.total_tokens,
            raw=response.content or "",
        ))

    async def _ask_model(self, content: str) -> LLMResponse:
        try:
            response = await self.provider.chat(
                messages=[{"role": "user", "content": CLASSIFY_PROMPT.format(message=content)}],
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except Exception as e:
            raise ClassificationFailure(str(e)) from e

        if response.is_error:
            raise ClassificationFailure(response.content or "provider error")
        return response

    def _fallback(self, start: float, error: str) -> ClassificationResult:
        return ClassificationResult(
            classification=Classification.SUBSTANTIVE,
            method="fallback",
            latency_ms=(time.time() - start) * 1000,
            error=error,
        )

    def _record(self, result: ClassificationResult) -> ClassificationResult:
        key = f"{result.method}:{result.classification.value}"
        self._counts[key] = self._counts.get(key, 0) + 1
        return result

    async def get_simple_response(self, content: str, style_guide: str) -> SimpleResponse:
        """
        Generate a short direct reply for a phatic message.

        Raises:
            RuntimeError: No provider, or the provider reported an error.
        """
        if self.provider is None:
            raise RuntimeError("No provider configured for simple responses")

        response = await self.provider.chat(
            messages=[
                {"role": "system", "content": SIMPLE_RESPONSE_SYSTEM.format(style_guide=style_guide)},
                {"role": "user", "content": content},
            ],
            model=self.config.simple_response_model or self.config.model,
            max_tokens=self.config.simple_response_max_tokens,
            temperature=self.config.simple_response_temperature,
        )
        if response.is_error or not response.content:
            raise RuntimeError(f"Simple response generation failed: {response.content}")

        return SimpleResponse(response=response.content.strip(), tokens_used=response.total_tokens)

    def get_statistics(self) -> dict[str, int]:
        """Counts per method:label."""
        return dict(self._counts)
