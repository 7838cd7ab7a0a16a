"""Built-in skills."""

from replygate.skills.base import Skill
from replygate.skills.builtin.history import ConversationHistorySkill
from replygate.skills.builtin.knowledge import KnowledgeGraphSkill
from replygate.skills.builtin.persona import (
    ContactInfo,
    Persona,
    PersonaSkill,
    PersonaSource,
    fallback_persona,
)
from replygate.skills.builtin.style import StyleProfile, StyleProfileSkill, StyleProfileSource

__all__ = [
    "ContactInfo",
    "ConversationHistorySkill",
    "KnowledgeGraphSkill",
    "Persona",
    "PersonaSkill",
    "PersonaSource",
    "StyleProfile",
    "StyleProfileSkill",
    "StyleProfileSource",
    "create_builtin_skills",
    "fallback_persona",
]


def create_builtin_skills() -> list[Skill]:
    """Fresh instances of every built-in skill."""
    return [
        PersonaSkill(),
        StyleProfileSkill(),
        ConversationHistorySkill(),
        KnowledgeGraphSkill(),
    ]
