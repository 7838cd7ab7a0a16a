"""Knowledge graph skill backed by hybrid retrieval."""

import time
from typing import Any

from loguru import logger

from replygate.retrieval.hybrid import HybridRetriever
from replygate.retrieval.models import (
    CategoryLimits,
    ContactContext,
    RetrievalConfig,
)
from replygate.skills.base import (
    ConfigField,
    Permission,
    Skill,
    SkillDependencies,
    SkillExecutionContext,
    SkillExecutionResult,
    SkillManifest,
)

MANIFEST = SkillManifest(
    id="knowledge-graph",
    name="Knowledge Graph",
    version="1.0.0",
    description=(
        "Retrieves people, topics and events related to the contact and message "
        "from the knowledge store."
    ),
    config_fields=(
        ConfigField(
            key="maxPeople",
            type="number",
            label="Max People",
            default=10,
            description="Maximum number of people to retrieve",
        ),
        ConfigField(
            key="maxTopics",
            type="number",
            label="Max Topics",
            default=8,
            description="Maximum number of topics to retrieve",
        ),
        ConfigField(
            key="maxEvents",
            type="number",
            label="Max Events",
            default=5,
            description="Maximum number of events to retrieve",
        ),
        ConfigField(
            key="semanticEnabled",
            type="boolean",
            label="Enable Semantic Search",
            default=True,
            description="Use semantic search when available (falls back to keyword search)",
        ),
        ConfigField(
            key="fallbackThreshold",
            type="number",
            label="Fallback Threshold",
            default=3,
            description="Minimum results before triggering keyword fallback",
        ),
    ),
    permissions=(Permission.REDIS_READ, Permission.AUTOMEM_READ),
)


def render_context(context: ContactContext) -> str | None:
    sections = []

    if context.people:
        lines = []
        for person in context.people:
            desc = person.name
            if person.occupation:
                desc += f" ({person.occupation})"
            if person.company:
                desc += f" at {person.company}"
            if person.notes:
                desc += f" - {person.notes}"
            lines.append(f"- {desc}")
        sections.append("**People mentioned:**\n" + "\n".join(lines))

    if context.topics:
        lines = []
        for topic in context.topics:
            desc = topic.name
            if topic.category:
                desc += f" [{topic.category}]"
            if topic.times > 1:
                desc += f" (mentioned {topic.times}x)"
            lines.append(f"- {desc}")
        sections.append("**Relevant topics:**\n" + "\n".join(lines))

    if context.events:
        lines = []
        for event in context.events:
            desc = event.name
            if event.date:
                desc += f" on {event.date}"
            if event.description:
                desc += f": {event.description}"
            lines.append(f"- {desc}")
        sections.append("**Recent events:**\n" + "\n".join(lines))

    return "\n\n".join(sections) if sections else None


class KnowledgeGraphSkill(Skill):
    """People, topics and events via the hybrid retriever."""

    @property
    def manifest(self) -> SkillManifest:
        return MANIFEST

    async def activate(
        self,
        deps: SkillDependencies,
        config: dict[str, Any] | None = None,
    ) -> None:
        await super().activate(deps, config)
        if self.deps.retriever is None:
            self.deps.retriever = HybridRetriever()

    def retrieval_config(self, context: SkillExecutionContext | None = None) -> RetrievalConfig:
        base = self.deps.retriever.default_config
        return RetrievalConfig(
            enabled=base.enabled and bool(self.get_config("semanticEnabled", context)),
            top_k=CategoryLimits(
                topics=int(self.get_config("maxTopics", context)),
                people=int(self.get_config("maxPeople", context)),
                events=int(self.get_config("maxEvents", context)),
            ),
            min_score=base.min_score,
            fallback_threshold=int(self.get_config("fallbackThreshold", context)),
            rerank=base.rerank,
        )

    async def execute(self, context: SkillExecutionContext) -> SkillExecutionResult:
        self.ensure_activated()
        start = time.time()

        result = await self.deps.retriever.retrieve_context(
            context.message_content,
            context.contact_id,
            self.retrieval_config(context),
        )

        logger.debug(
            f"Knowledge retrieval for {context.contact_id}: {result.method}, "
            f"{result.context.total} items ({result.latency_ms:.0f}ms)"
        )

        return self.build_result(
            start,
            context=render_context(result.context),
            data={
                "graphContext": result.context.to_dict(),
                "retrievalMethod": result.method,
            },
            item_count=result.context.total,
        )
