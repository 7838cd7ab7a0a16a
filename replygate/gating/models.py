"""Data types for the gating engine."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# Expiry of a pause that only ends when cleared explicitly
INDEFINITE = math.inf


class GateReason(str, Enum):
    """Why a permit was denied."""
    GLOBAL = "global"
    CONTACT = "contact"
    SLEEP = "sleep"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass
class PermitResult:
    """Outcome of a permit check."""
    allowed: bool
    reason: GateReason | None = None
    until: float | None = None  # Pause expiry, wake-up time, or INDEFINITE
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "until": None if self.until is None or math.isinf(self.until) else self.until,
            "indefinite": self.until is not None and math.isinf(self.until),
            "detail": self.detail,
        }


@dataclass
class ContactPause:
    """A per-contact suppression entry."""
    contact_id: str
    expires_at: float
    reason: str | None = None

    def is_active(self, now: float) -> bool:
        return now < self.expires_at

    def to_value(self) -> dict[str, Any]:
        return {"expiresAt": self.expires_at, "reason": self.reason}

    @classmethod
    def from_value(cls, contact_id: str, value: Any) -> "ContactPause":
        # Older writers stored the bare expiry timestamp
        if isinstance(value, (int, float, str)) and not isinstance(value, bool):
            return cls(contact_id=contact_id, expires_at=float(value))
        return cls(
            contact_id=contact_id,
            expires_at=float(value.get("expiresAt", 0)),
            reason=value.get("reason"),
        )


@dataclass
class GateStatus:
    """Global pause status exposed to monitoring."""
    enabled: bool
    until: float | None  # None, a timestamp, or INDEFINITE
    deferred_count: int = 0

    @property
    def indefinite(self) -> bool:
        return self.until is not None and math.isinf(self.until)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "until": None if self.until is None or self.indefinite else self.until,
            "indefinite": self.indefinite,
            "deferredCount": self.deferred_count,
        }


@dataclass
class PauseAllReport:
    """Result of pausing every known contact before lifting the global pause."""
    total: int
    paused: int
    expires_at: float
    contacts: list[str] = field(default_factory=list)
