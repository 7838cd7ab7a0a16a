"""
Tests for the built-in context skills.
"""

import pytest

from replygate.history.models import StoredMessage
from replygate.history.store import HistoryStore
from replygate.retrieval.hybrid import HybridRetriever
from replygate.retrieval.models import RetrievalConfig
from replygate.skills.base import SkillDependencies, SkillExecutionContext, SkillHealth
from replygate.skills.builtin import (
    ConversationHistorySkill,
    KnowledgeGraphSkill,
    PersonaSkill,
    StyleProfileSkill,
    create_builtin_skills,
)
from replygate.skills.builtin.persona import (
    FALLBACK_STYLE_GUIDE,
    ContactInfo,
    Persona,
    PersonaSource,
)
from replygate.skills.builtin.style import (
    PunctuationStyle,
    StyleProfile,
    StyleProfileSource,
    describe_formality,
    describe_length,
)
from replygate.skills.policy import POLICY_DEFAULT, POLICY_READONLY
from replygate.skills.registry import SkillRegistry
from replygate.store.keys import StoreKeys

from conftest import START_TIME, FakeKeywordSearch, FakeSemanticSearch, candidate


def make_context(contact_id="alice", content="how was the concert?", relationship="friend", **config):
    return SkillExecutionContext(
        contact_id=contact_id,
        message_content=content,
        relationship_type=relationship,
        config=config,
    )


class FakePersonaSource(PersonaSource):
    def __init__(self, info=None, personas=None, relationships=None, default=None, error=None):
        self.info = info
        self.personas = personas or {}
        self.relationships = relationships or {}
        self.default = default
        self.error = error
        self.lookups = 0

    async def get_contact_info(self, contact_id):
        if self.error is not None:
            raise self.error
        return self.info

    async def get_persona_by_id(self, persona_id):
        self.lookups += 1
        return self.personas.get(persona_id)

    async def get_persona_for_relationship(self, relationship_type):
        self.lookups += 1
        return self.relationships.get(relationship_type)

    async def get_default_persona(self):
        return self.default


class FakeProfileSource(StyleProfileSource):
    def __init__(self, profile=None):
        self.profile = profile
        self.lookups = 0

    async def get_profile(self, contact_id):
        self.lookups += 1
        return self.profile


WORK = Persona(id="work", name="Work Me", style_guide="Polite and precise.", tone="professional")
FRIEND = Persona(id="friend", name="Friend Me", style_guide="lowercase, jokes ok", example_messages=["lol yes"])
DEFAULT = Persona(id="default", name="Default Me", style_guide="Neutral.")


class TestPersonaSkill:
    """Tests for persona resolution order."""

    async def activate(self, store, source, **config):
        skill = PersonaSkill()
        await skill.activate(SkillDependencies(store=store, persona_source=source), config)
        return skill

    @pytest.mark.asyncio
    async def test_assigned_persona_wins(self, store):
        source = FakePersonaSource(
            info=ContactInfo(assigned_persona="work"),
            personas={"work": WORK},
            relationships={"friend": FRIEND},
        )
        skill = await self.activate(store, source)

        result = await skill.execute(make_context())

        assert result.data["persona"]["id"] == "work"
        assert "**Persona: Work Me**" in result.context
        assert "Tone: professional" in result.context

    @pytest.mark.asyncio
    async def test_assigned_persona_is_cached(self, store):
        source = FakePersonaSource(info=ContactInfo(assigned_persona="work"), personas={"work": WORK})
        skill = await self.activate(store, source)

        first = await skill.execute(make_context())
        second = await skill.execute(make_context())

        assert not first.metadata.cached
        assert second.metadata.cached
        assert source.lookups == 1
        assert await store.ttl(f"{StoreKeys.PERSONA_CACHE_PREFIX}work") == 1800

    @pytest.mark.asyncio
    async def test_missing_assigned_falls_back_to_relationship(self, store):
        source = FakePersonaSource(
            info=ContactInfo(assigned_persona="deleted"),
            relationships={"friend": FRIEND},
        )
        skill = await self.activate(store, source)

        result = await skill.execute(make_context())

        assert result.data["persona"]["id"] == "friend"
        assert 'Example messages:\n- "lol yes"' in result.context

    @pytest.mark.asyncio
    async def test_default_persona(self, store):
        source = FakePersonaSource(default=DEFAULT)
        skill = await self.activate(store, source)

        result = await skill.execute(make_context(relationship="coworker"))

        assert result.data["persona"]["id"] == "default"

    @pytest.mark.asyncio
    async def test_relationship_fallback_disabled(self, store):
        source = FakePersonaSource(relationships={"friend": FRIEND})
        skill = await self.activate(store, source, useRelationshipFallback=False, defaultTone="formal")

        result = await skill.execute(make_context())

        assert result.data["persona"]["id"] == "fallback"
        assert result.data["persona"]["tone"] == "formal"

    @pytest.mark.asyncio
    async def test_source_error_uses_static_fallback(self, store):
        skill = await self.activate(store, FakePersonaSource(error=ConnectionError("down")))

        result = await skill.execute(make_context())

        assert FALLBACK_STYLE_GUIDE in result.context
        assert result.metadata.error is None


class TestStyleProfileSkill:
    """Tests for the style profile skill."""

    PROFILE = StyleProfile(
        avg_message_length=40,
        formality_score=0.2,
        emoji_frequency=0.6,
        punctuation_style=PunctuationStyle(uses_ellipsis=True, ends_with_period=False),
        greeting_style=["hey", "yo", "sup", "hiya"],
        sign_off_style=["later"],
        sample_count=25,
    )

    async def activate(self, store, source, **config):
        skill = StyleProfileSkill()
        await skill.activate(SkillDependencies(store=store, profile_source=source), config)
        return skill

    def test_descriptions(self):
        assert describe_length(40) == "very brief (keep responses short)"
        assert describe_length(250) == "detailed (longer responses acceptable)"
        assert describe_formality(0.6) == "neutral"
        assert describe_formality(0.9) == "very formal"

    @pytest.mark.asyncio
    async def test_renders_profile(self, store):
        skill = await self.activate(store, FakeProfileSource(self.PROFILE))

        result = await skill.execute(make_context())

        assert "- Formality: very casual" in result.context
        assert "- Emoji usage: frequent" in result.context
        assert "uses ellipsis (...), often omits periods" in result.context
        assert "- Common greetings: hey, yo, sup" in result.context
        assert "(Based on 25 messages)" in result.context

    @pytest.mark.asyncio
    async def test_examples_can_be_excluded(self, store):
        skill = await self.activate(store, FakeProfileSource(self.PROFILE), includeExamples=False)
        result = await skill.execute(make_context())
        assert "greetings" not in result.context

    @pytest.mark.asyncio
    async def test_cached_in_store(self, store):
        source = FakeProfileSource(self.PROFILE)
        skill = await self.activate(store, source, cacheTTL=60)

        await skill.execute(make_context())
        result = await skill.execute(make_context())

        assert result.metadata.cached
        assert source.lookups == 1
        assert await store.ttl(f"{StoreKeys.STYLE_CACHE_PREFIX}alice") == 60

    @pytest.mark.asyncio
    async def test_insufficient_samples(self, store):
        sparse = StyleProfile(avg_message_length=10, formality_score=0.5, sample_count=3)
        skill = await self.activate(store, FakeProfileSource(sparse))

        result = await skill.execute(make_context())

        assert result.context is None
        assert result.data["insufficientSamples"]

    @pytest.mark.asyncio
    async def test_disabled(self, store):
        source = FakeProfileSource(self.PROFILE)
        skill = await self.activate(store, source)

        result = await skill.execute(make_context(enabled=False))

        assert result.data["skipped"]
        assert source.lookups == 0


class TestConversationHistorySkill:
    """Tests for the conversation history skill."""

    async def seed(self, store, count, spacing=60):
        history = HistoryStore(store)
        for i in range(count):
            await history.add_message("alice", StoredMessage(
                id=f"m{i}",
                role="user" if i % 2 == 0 else "assistant",
                content=f"concert message number {i}",
                timestamp=START_TIME - (count - i) * spacing,
            ))

    async def activate(self, store, clock, **config):
        skill = ConversationHistorySkill()
        await skill.activate(SkillDependencies(store=store, clock=clock), config)
        return skill

    @pytest.mark.asyncio
    async def test_renders_recent_messages(self, store, clock):
        await self.seed(store, 4)
        skill = await self.activate(store, clock)

        result = await skill.execute(make_context())

        assert result.context.startswith("**Recent conversation:**")
        assert "Contact: concert message number 0" in result.context
        assert "You: concert message number 1" in result.context
        assert result.data["historyMessageCount"] == 4
        assert result.data["conversationHistory"][1] == {
            "role": "assistant", "content": "concert message number 1",
        }

    @pytest.mark.asyncio
    async def test_max_messages(self, store, clock):
        await self.seed(store, 10)
        skill = await self.activate(store, clock, maxMessages=3, useKeywordChunking=False)

        result = await skill.execute(make_context())

        assert [m["content"][-1] for m in result.data["conversationHistory"]] == ["7", "8", "9"]

    @pytest.mark.asyncio
    async def test_max_age(self, store, clock):
        await self.seed(store, 6, spacing=3600)
        skill = await self.activate(store, clock, maxAgeHours=3, useKeywordChunking=False)

        result = await skill.execute(make_context())

        # Messages 1h, 2h old pass; exactly 3h old does not
        assert result.data["historyMessageCount"] == 2

    @pytest.mark.asyncio
    async def test_token_budget(self, store, clock):
        await self.seed(store, 10)
        skill = await self.activate(store, clock, tokenBudget=40)

        result = await skill.execute(make_context())

        assert result.data["historyMessageCount"] == 2
        assert result.data["tokenEstimate"] <= 40

    @pytest.mark.asyncio
    async def test_empty_history(self, store, clock):
        skill = await self.activate(store, clock)
        result = await skill.execute(make_context())
        assert result.context is None
        assert result.metadata.item_count == 0

    @pytest.mark.asyncio
    async def test_disabled(self, store, clock):
        await self.seed(store, 3)
        skill = await self.activate(store, clock, enabled=False)

        result = await skill.execute(make_context())

        assert result.context is None
        assert result.data["skipped"]

    @pytest.mark.asyncio
    async def test_health(self, store, clock):
        skill = ConversationHistorySkill()
        assert await skill.health_check() == SkillHealth.UNHEALTHY
        await skill.activate(SkillDependencies(store=store, clock=clock))
        assert await skill.health_check() == SkillHealth.HEALTHY


class TestKnowledgeGraphSkill:
    """Tests for the knowledge graph skill."""

    async def activate(self, retriever, **config):
        skill = KnowledgeGraphSkill()
        await skill.activate(SkillDependencies(retriever=retriever), config)
        return skill

    @pytest.mark.asyncio
    async def test_renders_sections(self):
        semantic = FakeSemanticSearch({
            "people": [candidate("Bob", 0.9, "people", occupation="chef", company="Luigi's")],
            "topics": [candidate("jazz", 0.8, "topics", times=4, category="music")],
            "events": [candidate("Concert", 0.9, "events", date="2024-01-05", description="Blue Note")],
        })
        skill = await self.activate(HybridRetriever(semantic))

        result = await skill.execute(make_context())

        assert "**People mentioned:**\n- Bob (chef) at Luigi's" in result.context
        assert "- jazz [music] (mentioned 4x)" in result.context
        assert "- Concert on 2024-01-05: Blue Note" in result.context
        assert result.data["retrievalMethod"] == "semantic"
        assert result.metadata.item_count == 3

    @pytest.mark.asyncio
    async def test_config_drives_retrieval(self):
        semantic = FakeSemanticSearch()
        keyword = FakeKeywordSearch({"people": [candidate("Bob", 0, "people")]})
        skill = await self.activate(HybridRetriever(semantic, keyword), maxPeople=2, semanticEnabled=False)

        result = await skill.execute(make_context())

        assert semantic.calls == []
        assert ("people", 2, 0.0) in keyword.calls
        assert result.data["retrievalMethod"] == "keyword"

    @pytest.mark.asyncio
    async def test_retriever_defaults_respected(self):
        retriever = HybridRetriever(FakeSemanticSearch(), default_config=RetrievalConfig(enabled=False))
        skill = await self.activate(retriever)
        assert not skill.retrieval_config().enabled

    @pytest.mark.asyncio
    async def test_empty_context(self):
        skill = await self.activate(HybridRetriever())
        result = await skill.execute(make_context())
        assert result.context is None


class TestBuiltinRegistration:
    """Tests for registering the built-in set."""

    @pytest.mark.asyncio
    async def test_default_policy_activates_all(self, store):
        registry = SkillRegistry(store=store, granted_permissions=POLICY_DEFAULT)
        for skill in create_builtin_skills():
            assert await registry.register(skill)
        assert registry.enabled_ids() == ["conversation-history", "knowledge-graph", "persona", "style-profile"]

    @pytest.mark.asyncio
    async def test_readonly_policy_refuses_writers(self, store):
        registry = SkillRegistry(store=store, granted_permissions=POLICY_READONLY)
        for skill in create_builtin_skills():
            await registry.register(skill)

        refused = {info.id for info in registry.list_skills() if info.refused_reason}
        assert refused == {"persona", "style-profile"}
