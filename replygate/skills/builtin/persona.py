"""
Persona skill.

Resolves the persona to write as, in order:
1. The persona assigned to the contact
2. The persona for the relationship type
3. The default persona
4. A static fallback

Every path, including errors, yields a persona context.
"""

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

FALLBACK_STYLE_GUIDE = "Keep responses brief and natural. Match the energy of the conversation."

TONES = ("casual", "professional", "friendly", "formal")

MANIFEST = SkillManifest(
    id="persona",
    name="Persona",
    version="1.0.0",
    description=(
        "Retrieves the persona style guide for the contact's assigned persona "
        "or relationship type."
    ),
    config_fields=(
        ConfigField(
            key="cacheTTL",
            type="number",
            label="Cache TTL (seconds)",
            default=1800,
            description="How long to cache persona data in the store",
        ),
        ConfigField(
            key="useRelationshipFallback",
            type="boolean",
            label="Use Relationship Fallback",
            default=True,
            description="Fall back to the relationship persona if the assigned one is not found",
        ),
        ConfigField(
            key="defaultTone",
            type="select",
            label="Default Tone",
            default="casual",
            description="Fallback tone when no persona is found",
            options=TONES,
        ),
    ),
    permissions=(Permission.REDIS_READ, Permission.REDIS_WRITE, Permission.AUTOMEM_READ),
)


@dataclass
class Persona:
    id: str
    name: str
    style_guide: str
    tone: str = "casual"
    example_messages: list[str] = field(default_factory=list)
    applicable_to: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Persona":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            style_guide=str(data.get("style_guide", "")),
            tone=str(data.get("tone", "casual")),
            example_messages=list(data.get("example_messages") or []),
            applicable_to=list(data.get("applicable_to") or []),
        )


def fallback_persona(tone: str = "casual") -> Persona:
    return Persona(
        id="fallback",
        name="Default",
        style_guide=FALLBACK_STYLE_GUIDE,
        tone=tone,
        applicable_to=["acquaintance"],
    )


@dataclass
class ContactInfo:
    """What the knowledge store knows about a contact."""
    assigned_persona: str | None = None
    relationship_type: str | None = None


class PersonaSource(ABC):
    """Persona lookups against the knowledge store."""

    @abstractmethod
    async def get_contact_info(self, contact_id: str) -> ContactInfo | None:
        pass

    @abstractmethod
    async def get_persona_by_id(self, persona_id: str) -> Persona | None:
        pass

    @abstractmethod
    async def get_persona_for_relationship(self, relationship_type: str) -> Persona | None:
        pass

    @abstractmethod
    async def get_default_persona(self) -> Persona | None:
        pass


def render_persona(persona: Persona) -> str:
    parts = [
        f"**Persona: {persona.name}**",
        f"Tone: {persona.tone}",
        f"\nStyle Guide:\n{persona.style_guide}",
    ]
    if persona.example_messages:
        examples = "\n".join(f'- "{m}"' for m in persona.example_messages[:3])
        parts.append(f"\nExample messages:\n{examples}")
    return "\n".join(parts)


class PersonaSkill(Skill):
    """Persona style guide injection."""

    @property
    def manifest(self) -> SkillManifest:
        return MANIFEST

    async def _cache_get(self, key: str) -> Persona | None:
        if self.deps.store is None:
            return None
        cached = await self.deps.store.get(f"{StoreKeys.PERSONA_CACHE_PREFIX}{key}")
        return Persona.from_dict(cached) if isinstance(cached, dict) else None

    async def _cache_set(self, key: str, persona: Persona, ttl: float) -> None:
        if self.deps.store is not None and ttl > 0:
            await self.deps.store.set(
                f"{StoreKeys.PERSONA_CACHE_PREFIX}{key}", persona.to_dict(), ttl_seconds=ttl
            )

    async def resolve(self, context: SkillExecutionContext) -> tuple[Persona | None, bool]:
        """Return (persona, cached); None when every source came up empty."""
        source = self.deps.persona_source
        cache_ttl = self.get_config("cacheTTL", context)
        use_relationship = self.get_config("useRelationshipFallback", context)

        info = await source.get_contact_info(context.contact_id) if source else None
        relationship = context.relationship_type or (info.relationship_type if info else None) or "acquaintance"

        if info and info.assigned_persona:
            persona = await self._cache_get(info.assigned_persona)
            if persona:
                return persona, True
            persona = await source.get_persona_by_id(info.assigned_persona)
            if persona:
                await self._cache_set(info.assigned_persona, persona, cache_ttl)
                return persona, False
            logger.warning(f"Assigned persona {info.assigned_persona} not found for {context.contact_id}")

        if not use_relationship:
            return None, False

        cache_key = f"relationship:{relationship}"
        persona = await self._cache_get(cache_key)
        if persona:
            return persona, True

        if source is None:
            return None, False

        persona = await source.get_persona_for_relationship(relationship)
        if persona is None:
            persona = await source.get_default_persona()
        if persona is not None:
            await self._cache_set(cache_key, persona, cache_ttl)
        return persona, False

    async def execute(self, context: SkillExecutionContext) -> SkillExecutionResult:
        self.ensure_activated()
        start = time.time()
        tone = self.get_config("defaultTone", context)

        try:
            persona, cached = await self.resolve(context)
        except Exception as e:
            logger.warning(f"Persona lookup failed for {context.contact_id}, using fallback: {e}")
            persona, cached = None, False

        if persona is None:
            persona = fallback_persona(tone)

        return self.build_result(
            start,
            context=render_persona(persona),
            data={"persona": persona.to_dict(), "personaCached": cached},
            item_count=1,
            cached=cached,
        )
