"""
Skill framework for replygate.

Provides:
- Skill base class, manifests and config resolution
- Permission policy
- SkillRegistry with concurrent, failure-isolated execution
"""

from replygate.skills.base import (
    ConfigField,
    Permission,
    Skill,
    SkillDependencies,
    SkillExecutionContext,
    SkillExecutionResult,
    SkillHealth,
    SkillManifest,
    SkillResultMetadata,
    SkillState,
    resolve_config,
)
from replygate.skills.policy import PermissionCheck, PolicyDecision, SkillPolicy
from replygate.skills.registry import SkillInfo, SkillRegistry

__all__ = [
    "ConfigField",
    "Permission",
    "PermissionCheck",
    "PolicyDecision",
    "Skill",
    "SkillDependencies",
    "SkillExecutionContext",
    "SkillExecutionResult",
    "SkillHealth",
    "SkillInfo",
    "SkillManifest",
    "SkillPolicy",
    "SkillRegistry",
    "SkillResultMetadata",
    "SkillState",
    "resolve_config",
]
