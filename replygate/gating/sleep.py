"""
Sleep hours checker.

During sleep hours no automated reply is sent. The window is expressed in
the operator's local time (UTC plus a fixed offset) and may cross midnight.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any


@dataclass
class SleepHoursConfig:
    """Recurring daily window during which replies are suppressed."""
    enabled: bool = False
    start_hour: int = 23
    start_minute: int = 0
    end_hour: int = 7
    end_minute: int = 0
    timezone_offset: float = 0.0  # Hours from UTC, e.g. 8 for UTC+8

    def validate(self) -> None:
        """Raise ValueError if any field is out of range."""
        if not 0 <= self.start_hour <= 23:
            raise ValueError("start_hour must be between 0 and 23")
        if not 0 <= self.end_hour <= 23:
            raise ValueError("end_hour must be between 0 and 23")
        if not 0 <= self.start_minute <= 59:
            raise ValueError("start_minute must be between 0 and 59")
        if not 0 <= self.end_minute <= 59:
            raise ValueError("end_minute must be between 0 and 59")
        if not -12 <= self.timezone_offset <= 14:
            raise ValueError("timezone_offset must be between -12 and 14")

    @property
    def start(self) -> int:
        """Window start as minute of day."""
        return self.start_hour * 60 + self.start_minute

    @property
    def end(self) -> int:
        """Window end (exclusive) as minute of day."""
        return self.end_hour * 60 + self.end_minute

    def describe(self) -> str:
        return f"{self.start_hour:02d}:{self.start_minute:02d} - {self.end_hour:02d}:{self.end_minute:02d}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SleepHoursConfig":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


@dataclass
class SleepCheck:
    """Result of a sleep hours check."""
    is_sleeping: bool
    reason: str
    wakes_up_at: float | None = None  # Unix timestamp
    minutes_until_wake_up: int | None = None


def local_minute_of_day(now: float, timezone_offset: float) -> int:
    """Minute of day for a unix timestamp shifted by an hour offset."""
    local = datetime.fromtimestamp(now, tz=timezone.utc) + timedelta(hours=timezone_offset)
    return local.hour * 60 + local.minute


def in_window(minute: int, start: int, end: int) -> bool:
    """
    Test whether minute lies in [start, end).

    When end <= start the window crosses midnight and is the union of
    [start, 24:00) and [00:00, end).
    """
    if end <= start:
        return minute >= start or minute < end
    return start <= minute < end


def next_wake_up(config: SleepHoursConfig, now: float) -> float:
    """Timestamp of the next window end strictly after now."""
    tz = timezone(timedelta(hours=config.timezone_offset))
    local_now = datetime.fromtimestamp(now, tz=tz)
    wake = local_now.replace(
        hour=config.end_hour, minute=config.end_minute, second=0, microsecond=0
    )
    if wake.timestamp() <= now:
        wake += timedelta(days=1)
    return wake.timestamp()


def check_sleep_hours(config: SleepHoursConfig, now: float) -> SleepCheck:
    """
    Check whether now falls inside the configured sleep window.

    Args:
        config: Sleep hours configuration.
        now: Current unix timestamp.

    Returns:
        SleepCheck with the wake-up time when sleeping.
    """
    if not config.enabled:
        return SleepCheck(is_sleeping=False, reason="Sleep hours are disabled")

    minute = local_minute_of_day(now, config.timezone_offset)
    if not in_window(minute, config.start, config.end):
        return SleepCheck(is_sleeping=False, reason="Outside sleep hours")

    wakes_up_at = next_wake_up(config, now)
    return SleepCheck(
        is_sleeping=True,
        reason=f"Sleep hours active ({config.describe()})",
        wakes_up_at=wakes_up_at,
        minutes_until_wake_up=int(-(-(wakes_up_at - now) // 60)),
    )
