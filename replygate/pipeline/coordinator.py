"""
Pipeline coordinator for replygate.

Runs one inbound message through:
1. Gate (permit check)
2. Classification router
3. Phatic fast path, or every enabled skill concurrently
4. Context assembly

Terminal states are denied, phatic_reply and assembled. A denial is final
for the message; nothing is queued for replay.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from replygate.errors import StoreUnavailable
from replygate.gating.engine import GateEngine
from replygate.gating.models import GateReason, PermitResult
from replygate.history.models import StoredMessage
from replygate.history.store import HistoryStore
from replygate.routing.classifier import (
    Classification,
    ClassificationResult,
    MessageClassifier,
    SimpleResponse,
)
from replygate.skills.base import SkillExecutionContext, SkillExecutionResult
from replygate.skills.builtin.persona import FALLBACK_STYLE_GUIDE
from replygate.skills.registry import SkillRegistry

# Skill contexts are concatenated in this order; other skills follow alphabetically
CONTEXT_ORDER = ("persona", "style-profile", "conversation-history", "knowledge-graph")

StyleGuideProvider = Callable[[str], Awaitable[str | None]]


class PipelineState(str, Enum):
    RECEIVED = "received"
    GATED = "gated"
    DENIED = "denied"
    CLASSIFIED = "classified"
    PHATIC_REPLY = "phatic_reply"
    SKILLS_EXECUTING = "skills_executing"
    ASSEMBLED = "assembled"


TERMINAL_STATES = frozenset({
    PipelineState.DENIED,
    PipelineState.PHATIC_REPLY,
    PipelineState.ASSEMBLED,
})


@dataclass(frozen=True)
class InboundMessage:
    """A message received from a contact."""
    contact_id: str
    content: str
    relationship_type: str = "acquaintance"
    message_id: str | None = None


@dataclass
class PipelineResult:
    """Everything the reply generator needs, or why nothing should be sent."""
    state: PipelineState
    message: InboundMessage
    permit: PermitResult | None = None
    classification: ClassificationResult | None = None
    simple_response: SimpleResponse | None = None
    skill_results: dict[str, SkillExecutionResult] = field(default_factory=dict)
    context: str = ""
    latency_ms: float = 0.0
    error: str | None = None
    transitions: list[PipelineState] = field(default_factory=list)

    @property
    def denied(self) -> bool:
        return self.state == PipelineState.DENIED

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.transitions.append(state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "contactId": self.message.contact_id,
            "permit": self.permit.to_dict() if self.permit else None,
            "classification": (
                self.classification.classification.value if self.classification else None
            ),
            "simpleResponse": self.simple_response.response if self.simple_response else None,
            "skills": {sid: r.to_dict() for sid, r in self.skill_results.items()},
            "context": self.context,
            "latencyMs": self.latency_ms,
            "error": self.error,
        }


def assemble_context(results: dict[str, SkillExecutionResult]) -> str:
    """Join skill contexts in a fixed order, skipping empty ones."""
    ordered = [sid for sid in CONTEXT_ORDER if sid in results]
    ordered += sorted(sid for sid in results if sid not in CONTEXT_ORDER)
    parts = [results[sid].context for sid in ordered if results[sid].context]
    return "\n\n".join(parts)


class PipelineCoordinator:
    """
    Sequences gate, classifier and skills for each message.

    The coordinator never raises for a single message: store failures are
    reported as a denied result carrying the error.
    """

    def __init__(
        self,
        gate: GateEngine,
        classifier: MessageClassifier,
        registry: SkillRegistry,
        style_guide_provider: StyleGuideProvider | None = None,
        register_contacts: bool = True,
        history: HistoryStore | None = None,
    ):
        self.gate = gate
        self.classifier = classifier
        self.registry = registry
        self.style_guide_provider = style_guide_provider
        self.register_contacts = register_contacts
        self.history = history

    async def process(self, message: InboundMessage) -> PipelineResult:
        """
        Run one message through the pipeline.

        The message is appended to the contact's history afterwards, so the
        history skill only sees earlier turns.

        Args:
            message: Inbound message.

        Returns:
            PipelineResult in a terminal state.
        """
        result = await self._run(message)
        await self._record_inbound(message)
        return result

    async def _run(self, message: InboundMessage) -> PipelineResult:
        start = time.time()
        result = PipelineResult(state=PipelineState.RECEIVED, message=message)
        result.transitions.append(PipelineState.RECEIVED)

        if self.register_contacts:
            try:
                await self.gate.register_contact(message.contact_id)
            except StoreUnavailable as e:
                logger.warning(f"Could not register contact {message.contact_id}: {e}")

        try:
            result.permit = await self.gate.check_permit(message.contact_id)
        except StoreUnavailable as e:
            result.permit = PermitResult(
                allowed=False,
                reason=GateReason.STORE_UNAVAILABLE,
                detail=str(e),
            )
            result.error = f"store unavailable: {e}"

        result.advance(PipelineState.GATED)

        if not result.permit.allowed:
            result.advance(PipelineState.DENIED)
            logger.info(
                f"Deferred message from {message.contact_id} ({result.permit.reason.value})"
            )
            return self._finish(result, start)

        result.classification = await self.classifier.classify_detailed(message.content)
        result.advance(PipelineState.CLASSIFIED)

        if result.classification.classification == Classification.PHATIC:
            reply = await self._simple_reply(message)
            if reply is not None:
                result.simple_response = reply
                result.advance(PipelineState.PHATIC_REPLY)
                return self._finish(result, start)

        result.advance(PipelineState.SKILLS_EXECUTING)
        result.skill_results = await self.registry.execute_enabled(SkillExecutionContext(
            contact_id=message.contact_id,
            message_content=message.content,
            relationship_type=message.relationship_type,
        ))
        result.context = assemble_context(result.skill_results)
        result.advance(PipelineState.ASSEMBLED)
        return self._finish(result, start)

    async def _record_inbound(self, message: InboundMessage) -> None:
        if self.history is None:
            return
        try:
            await self.history.add_message(message.contact_id, StoredMessage(
                id=message.message_id or uuid.uuid4().hex,
                role="user",
                content=message.content,
                timestamp=time.time(),
            ))
        except StoreUnavailable as e:
            logger.warning(f"Could not record message from {message.contact_id}: {e}")

    async def _simple_reply(self, message: InboundMessage) -> SimpleResponse | None:
        """Phatic reply, or None to fall through to the skill path."""
        try:
            style_guide = FALLBACK_STYLE_GUIDE
            if self.style_guide_provider is not None:
                style_guide = await self.style_guide_provider(message.contact_id) or FALLBACK_STYLE_GUIDE
            return await self.classifier.get_simple_response(message.content, style_guide)
        except Exception as e:
            logger.warning(f"Simple response failed for {message.contact_id}, using full context: {e}")
            return None

    def _finish(self, result: PipelineResult, start: float) -> PipelineResult:
        result.latency_ms = (time.time() - start) * 1000
        logger.debug(
            f"Pipeline {result.message.contact_id}: "
            f"{' -> '.join(s.value for s in result.transitions)} ({result.latency_ms:.0f}ms)"
        )
        return result
