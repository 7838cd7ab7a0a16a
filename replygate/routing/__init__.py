"""
Reply routing for replygate.

Decides whether a message takes the phatic fast path or the full
skill-backed context path.
"""

from replygate.routing.classifier import (
    Classification,
    ClassificationResult,
    MessageClassifier,
    SimpleResponse,
    parse_label,
    quick_classify,
)

__all__ = [
    "Classification",
    "ClassificationResult",
    "MessageClassifier",
    "SimpleResponse",
    "parse_label",
    "quick_classify",
]
