"""Communication style profile skill."""

import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

from loguru import logger

from replygate.skills.base import (
    ConfigField,
    Permission,
    Skill,
    SkillExecutionContext,
    SkillExecutionResult,
    SkillManifest,
)
from replygate.store.keys import StoreKeys

MANIFEST = SkillManifest(
    id="style-profile",
    name="Style Profile",
    version="1.0.0",
    description="Retrieves the communication style learned from previous conversations with the contact.",
    config_fields=(
        ConfigField(
            key="enabled",
            type="boolean",
            label="Enable Style Matching",
            default=True,
            description="Whether to include the style profile in context",
        ),
        ConfigField(
            key="minSampleMessages",
            type="number",
            label="Min Sample Messages",
            default=10,
            description="Minimum number of messages required before using the style profile",
        ),
        ConfigField(
            key="cacheTTL",
            type="number",
            label="Cache TTL (seconds)",
            default=1800,
            description="How long to cache style profile data in the store",
        ),
        ConfigField(
            key="includeExamples",
            type="boolean",
            label="Include Style Examples",
            default=True,
            description="Include greeting and sign-off examples in the context",
        ),
    ),
    permissions=(Permission.REDIS_READ, Permission.REDIS_WRITE, Permission.AUTOMEM_READ),
)


@dataclass
class PunctuationStyle:
    uses_ellipsis: bool = False
    exclamation_frequency: float = 0.0
    ends_with_period: bool = True


@dataclass
class StyleProfile:
    """Aggregate style statistics for messages we sent to a contact."""
    avg_message_length: float
    formality_score: float
    emoji_frequency: float = 0.0
    punctuation_style: PunctuationStyle = field(default_factory=PunctuationStyle)
    greeting_style: list[str] = field(default_factory=list)
    sign_off_style: list[str] = field(default_factory=list)
    sample_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StyleProfile":
        punctuation = data.get("punctuation_style") or {}
        return cls(
            avg_message_length=float(data.get("avg_message_length", 0)),
            formality_score=float(data.get("formality_score", 0.5)),
            emoji_frequency=float(data.get("emoji_frequency", 0)),
            punctuation_style=PunctuationStyle(**punctuation),
            greeting_style=list(data.get("greeting_style") or []),
            sign_off_style=list(data.get("sign_off_style") or []),
            sample_count=int(data.get("sample_count", 0)),
        )


class StyleProfileSource(ABC):
    """Where style profiles come from (the knowledge store)."""

    @abstractmethod
    async def get_profile(self, contact_id: str) -> StyleProfile | None:
        pass


def describe_length(avg_length: float) -> str:
    if avg_length < 50:
        return "very brief (keep responses short)"
    if avg_length < 100:
        return "brief (concise responses preferred)"
    if avg_length < 200:
        return "moderate (standard length)"
    return "detailed (longer responses acceptable)"


def describe_formality(score: float) -> str:
    if score < 0.3:
        return "very casual"
    if score < 0.5:
        return "casual"
    if score < 0.7:
        return "neutral"
    if score < 0.85:
        return "formal"
    return "very formal"


def describe_emoji(frequency: float) -> str:
    if frequency < 0.2:
        return "occasional"
    if frequency < 0.5:
        return "moderate"
    return "frequent"


def describe_punctuation(style: PunctuationStyle) -> str | None:
    traits = []
    if style.uses_ellipsis:
        traits.append("uses ellipsis (...)")
    if style.exclamation_frequency > 0.3:
        traits.append("uses exclamation marks")
    if not style.ends_with_period:
        traits.append("often omits periods")
    return ", ".join(traits) if traits else None


def render_profile(profile: StyleProfile, include_examples: bool = True) -> str:
    lines = [
        "**Communication Style Profile:**",
        f"- Message length: {describe_length(profile.avg_message_length)}",
        f"- Formality: {describe_formality(profile.formality_score)}",
    ]
    if profile.emoji_frequency > 0.1:
        lines.append(f"- Emoji usage: {describe_emoji(profile.emoji_frequency)}")

    punctuation = describe_punctuation(profile.punctuation_style)
    if punctuation:
        lines.append(f"- Punctuation: {punctuation}")

    if include_examples:
        if profile.greeting_style:
            lines.append(f"- Common greetings: {', '.join(profile.greeting_style[:3])}")
        if profile.sign_off_style:
            lines.append(f"- Common sign-offs: {', '.join(profile.sign_off_style[:3])}")

    lines.append(f"\n(Based on {profile.sample_count} messages)")
    return "\n".join(lines)


class StyleProfileSkill(Skill):
    """Style profile lookup through a store cache with its own TTL."""

    @property
    def manifest(self) -> SkillManifest:
        return MANIFEST

    async def _load_profile(self, contact_id: str, cache_ttl: float) -> tuple[StyleProfile | None, bool]:
        """Return (profile, cached)."""
        store = self.deps.store
        key = f"{StoreKeys.STYLE_CACHE_PREFIX}{contact_id}"

        if store is not None:
            cached = await store.get(key)
            if isinstance(cached, dict):
                return StyleProfile.from_dict(cached), True

        if self.deps.profile_source is None:
            return None, False

        profile = await self.deps.profile_source.get_profile(contact_id)
        if profile is not None and store is not None and cache_ttl > 0:
            await store.set(key, profile.to_dict(), ttl_seconds=cache_ttl)
        return profile, False

    async def execute(self, context: SkillExecutionContext) -> SkillExecutionResult:
        self.ensure_activated()
        start = time.time()

        if not self.get_config("enabled", context):
            return self.build_result(start, data={"styleProfile": None, "skipped": True})

        min_samples = self.get_config("minSampleMessages", context)
        profile, cached = await self._load_profile(
            context.contact_id, self.get_config("cacheTTL", context)
        )

        if profile is None or profile.sample_count < min_samples:
            logger.debug(
                f"Insufficient style samples for {context.contact_id}: "
                f"{profile.sample_count if profile else 0}/{min_samples}"
            )
            return self.build_result(
                start,
                data={"styleProfile": None, "insufficientSamples": True},
                cached=cached,
            )

        return self.build_result(
            start,
            context=render_profile(profile, bool(self.get_config("includeExamples", context))),
            data={"styleProfile": profile.to_dict()},
            item_count=1,
            cached=cached,
        )
