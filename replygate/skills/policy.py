"""
Permission policy for skills.

A skill is activated only when every permission in its manifest is
granted to the pipeline; there is no partial or degraded activation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from replygate.skills.base import Permission, SkillManifest


class PolicyDecision(str, Enum):
    """Result of a permission check."""
    ALLOW = "allow"
    DENY = "deny"


@dataclass
class PermissionCheck:
    """Outcome of checking one manifest."""
    decision: PolicyDecision
    missing: list[str] = field(default_factory=list)

    @property
    def allowed(self) -> bool:
        return self.decision == PolicyDecision.ALLOW


@dataclass
class SkillPolicy:
    """Set of permissions granted to a pipeline instance."""
    granted: set[Permission] = field(default_factory=set)

    @classmethod
    def from_names(cls, names: Iterable[str | Permission]) -> "SkillPolicy":
        """
        Build a policy from permission names.

        Raises:
            ValueError: A name is not a known permission.
        """
        return cls(granted={Permission(name) for name in names})

    def check(self, manifest: SkillManifest) -> PermissionCheck:
        missing = [p.value for p in manifest.permissions if p not in self.granted]
        if missing:
            return PermissionCheck(decision=PolicyDecision.DENY, missing=missing)
        return PermissionCheck(decision=PolicyDecision.ALLOW)


POLICY_READONLY = SkillPolicy(granted={Permission.REDIS_READ, Permission.AUTOMEM_READ})

POLICY_DEFAULT = SkillPolicy(granted={
    Permission.REDIS_READ,
    Permission.REDIS_WRITE,
    Permission.AUTOMEM_READ,
})
