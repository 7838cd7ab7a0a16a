"""Build a fully wired pipeline from configuration."""

from loguru import logger

from replygate.config.schema import Config
from replygate.gating.engine import GateEngine
from replygate.history.store import HistoryStore
from replygate.pipeline.coordinator import PipelineCoordinator, StyleGuideProvider
from replygate.providers.base import LLMProvider
from replygate.retrieval.hybrid import HybridRetriever
from replygate.retrieval.models import RetrievalConfig
from replygate.retrieval.providers import KeywordSearchProvider, SemanticSearchProvider
from replygate.routing.classifier import MessageClassifier
from replygate.skills.base import Skill, SkillDependencies, SkillHealth
from replygate.skills.builtin import create_builtin_skills
from replygate.skills.builtin.persona import PersonaSource
from replygate.skills.builtin.style import StyleProfileSource
from replygate.skills.registry import SkillRegistry
from replygate.store import create_store
from replygate.store.base import TTLStore


def create_provider(config: Config) -> LLMProvider:
    """LiteLLM provider for the classifier model."""
    from replygate.providers.litellm_provider import LiteLLMProvider

    return LiteLLMProvider(
        api_key=config.provider.api_key or None,
        api_base=config.provider.api_base,
        default_model=config.classifier.model,
        fallback_models=config.provider.fallback_models,
        cooldown_seconds=config.provider.cooldown_seconds,
    )


async def create_pipeline(
    config: Config | None = None,
    store: TTLStore | None = None,
    provider: LLMProvider | None = None,
    semantic: SemanticSearchProvider | None = None,
    keyword: KeywordSearchProvider | None = None,
    profile_source: StyleProfileSource | None = None,
    persona_source: PersonaSource | None = None,
    skills: list[Skill] | None = None,
    style_guide_provider: StyleGuideProvider | None = None,
) -> PipelineCoordinator:
    """
    Wire store, gate, classifier, retriever and skills together.

    Args:
        config: Root configuration (defaults if None).
        store: TTL store; built from config.store when None.
        provider: LLM provider; LiteLLM when None.
        semantic: Semantic search collaborator.
        keyword: Keyword search collaborator.
        profile_source: Style profile collaborator.
        persona_source: Persona collaborator.
        skills: Skills to register; the built-ins when None.
        style_guide_provider: Style guide lookup for phatic replies.

    Returns:
        A PipelineCoordinator with every skill registered and persisted
        state loaded.
    """
    config = config or Config()
    store = store or create_store(config.store)
    provider = provider or create_provider(config)

    gate = GateEngine(store, config.gate)
    classifier = MessageClassifier(provider, config.classifier)

    deps = SkillDependencies(
        store=store,
        history=HistoryStore(store),
        retriever=HybridRetriever(
            semantic=semantic,
            keyword=keyword,
            default_config=RetrievalConfig.from_settings(config.retrieval),
        ),
        profile_source=profile_source,
        persona_source=persona_source,
    )
    registry = SkillRegistry(
        store=store,
        granted_permissions=config.skills.granted_permissions,
        timeout_seconds=config.skills.timeout_seconds,
        deps=deps,
        disabled=config.skills.disabled,
        config_overrides=config.skills.config,
    )

    for skill in skills if skills is not None else create_builtin_skills():
        await registry.register(skill)
    await registry.load_state()
    for skill_id, health in (await registry.health_check_all()).items():
        if health == SkillHealth.UNHEALTHY:
            logger.warning(f"Skill {skill_id} failed its startup health check and will be skipped")

    active = [info.id for info in registry.list_skills() if info.enabled and not info.refused_reason]
    logger.info(f"Pipeline ready with {len(active)} active skills: {', '.join(active)}")

    return PipelineCoordinator(
        gate=gate,
        classifier=classifier,
        registry=registry,
        style_guide_provider=style_guide_provider,
        history=deps.history,
    )
