"""
Gating engine for replygate.

Decides whether an automated reply is permitted right now. Checks run in a
strict precedence order and stop at the first denial:
1. Global pause (kill switch), timed or indefinite
2. Contact-specific pause
3. Sleep hours

All state lives in the TTL store and is re-read on every check; nothing is
cached locally, so a store outage surfaces immediately instead of being
masked by stale state.
"""

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from replygate.config.schema import GateConfig
from replygate.errors import PauseAllError, StoreUnavailable
from replygate.gating.models import (
    INDEFINITE,
    ContactPause,
    GateReason,
    GateStatus,
    PauseAllReport,
    PermitResult,
)
from replygate.gating.sleep import SleepHoursConfig, check_sleep_hours
from replygate.store.base import TTLStore
from replygate.store.keys import StoreKeys


class GateEngine:
    """
    Owns global pause, contact pauses, sleep hours and the deferred counter.

    Every mutation goes through this API; the store is the only shared state.
    """

    PAUSE_ALL_REASON = "global_pause_lifted"

    def __init__(
        self,
        store: TTLStore,
        config: GateConfig | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.store = store
        self.config = config or GateConfig()
        self._clock = clock or time.time

    # ------------------------------------------------------------------
    # Permit check
    # ------------------------------------------------------------------

    async def check_permit(self, contact_id: str) -> PermitResult:
        """
        Check whether an automated reply to contact_id is permitted.

        Every denial increments the deferred counter. A store failure denies
        (fail-closed) and, unless raise_on_store_error is off, re-raises
        StoreUnavailable to the caller.
        """
        now = self._clock()

        try:
            result = await self._evaluate(contact_id, now)
        except StoreUnavailable as e:
            logger.error(f"Gate check failed for {contact_id}, denying: {e}")
            await self._record_denial_best_effort(GateReason.STORE_UNAVAILABLE)
            if self.config.raise_on_store_error:
                raise
            return PermitResult(
                allowed=False,
                reason=GateReason.STORE_UNAVAILABLE,
                detail=str(e),
            )

        if result.allowed:
            await self._end_deferred_window()
        else:
            logger.debug(f"Permit denied for {contact_id}: {result.reason.value}")
            await self._record_denial(result.reason)

        return result

    async def _evaluate(self, contact_id: str, now: float) -> PermitResult:
        global_until = await self._get_global_until(now)
        if global_until is not None:
            return PermitResult(
                allowed=False,
                reason=GateReason.GLOBAL,
                until=global_until,
                detail="Global pause active",
            )

        pause = await self.get_contact_pause(contact_id)
        if pause is not None:
            return PermitResult(
                allowed=False,
                reason=GateReason.CONTACT,
                until=pause.expires_at,
                detail=pause.reason or "Contact paused",
            )

        sleep = check_sleep_hours(await self.get_sleep_hours(), now)
        if sleep.is_sleeping:
            return PermitResult(
                allowed=False,
                reason=GateReason.SLEEP,
                until=sleep.wakes_up_at,
                detail=sleep.reason,
            )

        return PermitResult(allowed=True)

    # ------------------------------------------------------------------
    # Global pause
    # ------------------------------------------------------------------

    async def _get_global_until(self, now: float) -> float | None:
        """Expiry of the active global pause, or None when not paused."""
        value = await self.store.get(StoreKeys.GLOBAL_PAUSE)
        if value is None:
            return None

        until = value.get("until") if isinstance(value, dict) else None
        until_ts = INDEFINITE if until is None else float(until)
        if now < until_ts:
            return until_ts

        await self.store.delete(StoreKeys.GLOBAL_PAUSE)
        return None

    async def set_global_pause(self, duration_seconds: float = 0) -> float:
        """
        Pause automated replies for everyone.

        Args:
            duration_seconds: Pause length; 0 means indefinite.

        Returns:
            The pause expiry (INDEFINITE for an indefinite pause).
        """
        if duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")

        now = self._clock()
        if duration_seconds == 0:
            await self.store.set(StoreKeys.GLOBAL_PAUSE, {"until": None, "since": now})
            logger.info("Global pause enabled indefinitely")
            return INDEFINITE

        until = now + duration_seconds
        await self.store.set(
            StoreKeys.GLOBAL_PAUSE,
            {"until": until, "since": now},
            ttl_seconds=duration_seconds,
        )
        logger.info(f"Global pause enabled for {duration_seconds:.0f}s")
        return until

    async def clear_global_pause(self) -> PauseAllReport:
        """
        Lift the global pause without re-enabling anyone.

        Phase 1 writes a long contact pause for every known contact, retrying
        only the contacts whose write failed. Phase 2 deletes the global key,
        and only runs when phase 1 fully succeeded. Each contact then has to
        be resumed explicitly with clear_contact_pause.

        Raises:
            PauseAllError: Enumeration or pausing failed; the global pause
                is still in place.
            StoreUnavailable: Deleting the global key failed (every contact
                is already paused).
        """
        try:
            contacts = await self.known_contacts()
        except StoreUnavailable as e:
            logger.error(f"Contact enumeration failed, global pause left in place: {e}")
            raise PauseAllError(
                f"Could not enumerate contacts: {e}", paused=0, total=None
            ) from e

        ttl = self.config.pause_all_ttl_seconds
        expires_at = self._clock() + ttl
        pending = list(contacts)
        paused: list[str] = []
        last_error: Exception | None = None

        for attempt in range(1 + max(0, self.config.pause_all_retries)):
            if not pending:
                break
            if attempt:
                logger.warning(f"Retrying pause for {len(pending)} contacts (attempt {attempt + 1})")

            results = await asyncio.gather(
                *(self._write_contact_pause(c, expires_at, ttl, self.PAUSE_ALL_REASON) for c in pending),
                return_exceptions=True,
            )

            failed = []
            for contact_id, result in zip(pending, results):
                if isinstance(result, Exception):
                    last_error = result
                    failed.append(contact_id)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    paused.append(contact_id)
            pending = failed

        if pending:
            if paused:
                logger.error(
                    f"Paused {len(paused)} of {len(contacts)} contacts; "
                    f"global pause left in place ({len(pending)} failed: {last_error})"
                )
            else:
                logger.error(f"Pausing contacts failed entirely, global pause left in place: {last_error}")
            raise PauseAllError(
                f"Paused {len(paused)} of {len(contacts)} contacts: {last_error}",
                paused=len(paused),
                total=len(contacts),
            ) from last_error

        await self.store.delete(StoreKeys.GLOBAL_PAUSE)
        await self.store.delete(StoreKeys.DEFERRED_WINDOW)
        logger.info(f"Global pause cleared, {len(paused)} contacts paused individually")

        return PauseAllReport(
            total=len(contacts),
            paused=len(paused),
            expires_at=expires_at,
            contacts=paused,
        )

    async def get_status(self) -> GateStatus:
        """Global pause status and deferred count for monitoring."""
        until = await self._get_global_until(self._clock())
        return GateStatus(
            enabled=until is not None,
            until=until,
            deferred_count=await self.get_deferred_count(),
        )

    # ------------------------------------------------------------------
    # Contact pauses
    # ------------------------------------------------------------------

    async def _write_contact_pause(
        self,
        contact_id: str,
        expires_at: float,
        ttl: float,
        reason: str | None,
    ) -> ContactPause:
        pause = ContactPause(contact_id=contact_id, expires_at=expires_at, reason=reason)
        await self.store.set(StoreKeys.contact_pause(contact_id), pause.to_value(), ttl_seconds=ttl)
        return pause

    async def set_contact_pause(
        self,
        contact_id: str,
        duration_seconds: float,
        reason: str | None = None,
    ) -> ContactPause:
        """
        Pause automated replies for one contact.

        A duration of 0 pauses for pause_all_ttl_seconds, i.e. until cleared.
        """
        if duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")

        ttl = duration_seconds or self.config.pause_all_ttl_seconds
        pause = await self._write_contact_pause(contact_id, self._clock() + ttl, ttl, reason)
        logger.info(f"Contact {contact_id} paused for {ttl:.0f}s")
        return pause

    async def clear_contact_pause(self, contact_id: str) -> bool:
        """Resume automated replies for one contact."""
        removed = await self.store.delete(StoreKeys.contact_pause(contact_id))
        if removed:
            logger.info(f"Contact {contact_id} resumed")
        return removed

    async def get_contact_pause(self, contact_id: str) -> ContactPause | None:
        """Active pause for a contact; expired entries are deleted on read."""
        key = StoreKeys.contact_pause(contact_id)
        value = await self.store.get(key)
        if value is None:
            return None

        pause = ContactPause.from_value(contact_id, value)
        if pause.is_active(self._clock()):
            return pause

        await self.store.delete(key)
        return None

    async def list_contact_pauses(self) -> list[ContactPause]:
        pauses = []
        for contact_id in await self._paused_contact_ids():
            pause = await self.get_contact_pause(contact_id)
            if pause is not None:
                pauses.append(pause)
        return pauses

    async def _paused_contact_ids(self) -> list[str]:
        keys = await self.store.scan(StoreKeys.CONTACT_PAUSE_PREFIX)
        prefix_len = len(StoreKeys.CONTACT_PAUSE_PREFIX)
        return [k[prefix_len:] for k in keys]

    # ------------------------------------------------------------------
    # Known contacts
    # ------------------------------------------------------------------

    async def register_contact(self, contact_id: str, name: str | None = None) -> None:
        """Record a contact so pause-all can reach it."""
        await self.store.set(
            StoreKeys.contact(contact_id),
            {"id": contact_id, "name": name, "lastSeen": self._clock()},
        )

    async def known_contacts(self) -> list[str]:
        """Registered contacts plus any contact that already has a pause."""
        keys = await self.store.scan(StoreKeys.CONTACT_PREFIX)
        prefix_len = len(StoreKeys.CONTACT_PREFIX)
        contacts = {k[prefix_len:] for k in keys}
        contacts.update(await self._paused_contact_ids())
        return sorted(contacts)

    # ------------------------------------------------------------------
    # Sleep hours
    # ------------------------------------------------------------------

    async def get_sleep_hours(self) -> SleepHoursConfig:
        """Stored sleep hours, or the configured defaults."""
        value = await self.store.get(StoreKeys.SLEEP_HOURS)
        if isinstance(value, dict):
            return SleepHoursConfig.from_dict(value)
        return SleepHoursConfig(**self.config.sleep_hours.model_dump())

    async def set_sleep_hours(self, **changes: Any) -> SleepHoursConfig:
        """
        Update sleep hours.

        Raises:
            ValueError: Unknown field or value out of range.
        """
        current = await self.get_sleep_hours()
        unknown = set(changes) - set(SleepHoursConfig.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown sleep hours fields: {', '.join(sorted(unknown))}")

        updated = SleepHoursConfig(**{**current.to_dict(), **changes})
        updated.validate()
        await self.store.set(StoreKeys.SLEEP_HOURS, updated.to_dict())
        logger.info(f"Sleep hours updated: {updated.describe()} (enabled={updated.enabled})")
        return updated

    # ------------------------------------------------------------------
    # Deferred counter
    # ------------------------------------------------------------------

    async def _record_denial(self, reason: GateReason) -> None:
        await self.store.incr(StoreKeys.DEFERRED_COUNT)
        # Contact denials are counted without opening a window
        if reason != GateReason.CONTACT:
            await self.store.set(StoreKeys.DEFERRED_WINDOW, {"reason": reason.value, "at": self._clock()})

    async def _record_denial_best_effort(self, reason: GateReason) -> None:
        try:
            await self._record_denial(reason)
        except StoreUnavailable as e:
            logger.warning(f"Deferred counter not updated: {e}")

    async def _end_deferred_window(self) -> None:
        """
        Reset the counter on the first permit after a global, sleep or
        store-outage window. Contact pauses, including the ones left by
        clear_global_pause, never reset it.
        """
        if self.config.deferred_reset_policy != "reset":
            return
        if await self.store.get(StoreKeys.DEFERRED_WINDOW) is None:
            return
        count = await self.get_deferred_count()
        await self.reset_deferred_count()
        logger.info(f"Suppression window ended, {count} messages were deferred")

    async def get_deferred_count(self) -> int:
        value = await self.store.get(StoreKeys.DEFERRED_COUNT)
        return int(value or 0)

    async def reset_deferred_count(self) -> None:
        await self.store.delete(StoreKeys.DEFERRED_COUNT)
        await self.store.delete(StoreKeys.DEFERRED_WINDOW)
