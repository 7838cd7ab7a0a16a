"""
Message pipeline for replygate.

Gate, classify, then either a phatic reply or concurrent skill execution.
"""

from replygate.pipeline.coordinator import (
    CONTEXT_ORDER,
    InboundMessage,
    PipelineCoordinator,
    PipelineResult,
    PipelineState,
    TERMINAL_STATES,
    assemble_context,
)
from replygate.pipeline.factory import create_pipeline, create_provider

__all__ = [
    "CONTEXT_ORDER",
    "InboundMessage",
    "PipelineCoordinator",
    "PipelineResult",
    "PipelineState",
    "TERMINAL_STATES",
    "assemble_context",
    "create_pipeline",
    "create_provider",
]
