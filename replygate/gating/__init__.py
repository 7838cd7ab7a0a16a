"""
Reply gating for replygate.

Provides:
- Global pause (kill switch) with safe release
- Per-contact pauses
- Sleep hours window
- Deferred message counter
"""

from replygate.gating.engine import GateEngine
from replygate.gating.models import (
    INDEFINITE,
    ContactPause,
    GateReason,
    GateStatus,
    PauseAllReport,
    PermitResult,
)
from replygate.gating.sleep import SleepCheck, SleepHoursConfig, check_sleep_hours

__all__ = [
    "GateEngine",
    "INDEFINITE",
    "ContactPause",
    "GateReason",
    "GateStatus",
    "PauseAllReport",
    "PermitResult",
    "SleepCheck",
    "SleepHoursConfig",
    "check_sleep_hours",
]
