"""Conversation history skill."""

import time
from typing import Any

from loguru import logger

from replygate.history.chunker import ChunkingConfig, message_tokens, process_with_chunking
from replygate.history.models import StoredMessage
from replygate.history.store import HistoryStore
from replygate.skills.base import (
    ConfigField,
    Permission,
    Skill,
    SkillDependencies,
    SkillExecutionContext,
    SkillExecutionResult,
    SkillHealth,
    SkillManifest,
    SkillState,
)

MANIFEST = SkillManifest(
    id="conversation-history",
    name="Conversation History",
    version="1.0.0",
    description=(
        "Retrieves recent conversation history with keyword chunking to provide "
        "relevant context for response generation."
    ),
    config_fields=(
        ConfigField(
            key="enabled",
            type="boolean",
            label="Enable History Context",
            default=True,
            description="Whether to include conversation history in the prompt",
        ),
        ConfigField(
            key="maxMessages",
            type="number",
            label="Max Messages",
            default=50,
            description="Maximum number of messages to retrieve from history",
        ),
        ConfigField(
            key="tokenBudget",
            type="number",
            label="Token Budget",
            default=2000,
            description="Approximate maximum tokens to use for history context",
        ),
        ConfigField(
            key="useKeywordChunking",
            type="boolean",
            label="Use Keyword Chunking",
            default=True,
            description="Use keyword-continuity chunking to select relevant messages",
        ),
        ConfigField(
            key="maxAgeHours",
            type="number",
            label="Max Age (hours)",
            default=168,
            description="Maximum age of messages to include (0 = no limit)",
        ),
    ),
    permissions=(Permission.REDIS_READ,),
)


def truncate_to_budget(messages: list[StoredMessage], budget: int) -> tuple[list[StoredMessage], int]:
    """Keep the most recent messages that fit in the token budget."""
    kept: list[StoredMessage] = []
    tokens = 0
    for message in reversed(messages):
        cost = message_tokens(message.content)
        if tokens + cost > budget:
            break
        kept.insert(0, message)
        tokens += cost
    return kept, tokens


def render_history(messages: list[StoredMessage]) -> str:
    lines = [f"{m.speaker}: {m.content}" for m in messages]
    return "**Recent conversation:**\n" + "\n".join(lines)


class ConversationHistorySkill(Skill):
    """Recent messages with the contact, bounded by count, age and tokens."""

    @property
    def manifest(self) -> SkillManifest:
        return MANIFEST

    async def activate(
        self,
        deps: SkillDependencies,
        config: dict[str, Any] | None = None,
    ) -> None:
        await super().activate(deps, config)
        if self.deps.history is None and self.deps.store is not None:
            self.deps.history = HistoryStore(self.deps.store)

    async def execute(self, context: SkillExecutionContext) -> SkillExecutionResult:
        self.ensure_activated()
        start = time.time()

        if not self.get_config("enabled", context):
            return self.build_result(
                start,
                data={"conversationHistory": [], "historyMessageCount": 0, "skipped": True},
            )

        max_messages = int(self.get_config("maxMessages", context))
        token_budget = int(self.get_config("tokenBudget", context))
        max_age_hours = self.get_config("maxAgeHours", context)
        max_age_seconds = max_age_hours * 3600 if max_age_hours > 0 else None
        now = self.deps.clock()

        messages = await self.deps.history.get_messages(context.contact_id, limit=max_messages)

        if self.get_config("useKeywordChunking", context):
            messages = process_with_chunking(
                messages,
                now=now,
                max_age_seconds=max_age_seconds,
                config=ChunkingConfig(max_tokens=token_budget, max_messages=max_messages),
            )
        elif max_age_seconds:
            messages = [m for m in messages if m.timestamp > now - max_age_seconds]

        messages, tokens = truncate_to_budget(messages, token_budget)

        logger.debug(
            f"History for {context.contact_id}: {len(messages)} messages (~{tokens} tokens)"
        )

        return self.build_result(
            start,
            context=render_history(messages) if messages else None,
            data={
                "conversationHistory": [{"role": m.role, "content": m.content} for m in messages],
                "historyMessageCount": len(messages),
                "tokenEstimate": tokens,
            },
            item_count=len(messages),
        )

    async def health_check(self) -> SkillHealth:
        if self.state != SkillState.ACTIVATED or self.deps.history is None:
            return SkillHealth.UNHEALTHY
        return SkillHealth.HEALTHY
