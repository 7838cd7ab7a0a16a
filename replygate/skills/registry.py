"""
Skill registry and concurrent executor.

Provides:
- Registration with permission enforcement before activation
- Enabled set and per-skill configuration persisted in the TTL store
- Concurrent execution with a per-skill timeout
- Failure isolation: a failing skill yields an empty result, never an exception
- Health tracking (degraded on error or timeout, unhealthy on a failed health check)
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from replygate.errors import (
    SkillPermissionError,
    SkillRegistrationError,
    StoreUnavailable,
    SkillTimeout,
)
from replygate.skills.base import (
    Skill,
    SkillDependencies,
    SkillExecutionContext,
    SkillExecutionResult,
    SkillHealth,
    SkillManifest,
    SkillState,
)
from replygate.skills.policy import SkillPolicy
from replygate.store.base import TTLStore
from replygate.store.keys import StoreKeys

DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass
class SkillInfo:
    """Snapshot of a registered skill for listings."""
    id: str
    name: str
    version: str
    description: str
    state: SkillState
    enabled: bool
    health: SkillHealth
    permissions: list[str]
    config: dict[str, Any]
    refused_reason: str | None = None
    manifest: SkillManifest | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "state": self.state.value,
            "enabled": self.enabled,
            "health": self.health.value,
            "permissions": self.permissions,
            "config": self.config,
            "refusedReason": self.refused_reason,
        }


@dataclass
class _Entry:
    skill: Skill
    enabled: bool = True
    health: SkillHealth = SkillHealth.HEALTHY
    refused_reason: str | None = None
    failures: int = 0
    timeouts: int = 0
    runs: int = 0
    last_error: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)

    @property
    def runnable(self) -> bool:
        return (
            self.enabled
            and self.skill.state == SkillState.ACTIVATED
            and self.health != SkillHealth.UNHEALTHY
        )


class SkillRegistry:
    """
    Holds skills keyed by id and runs the enabled ones.

    Skills must be registered explicitly at startup. A skill whose
    manifest requests an ungranted permission stays in the REGISTERED
    state with a refusal reason and is never executed.
    """

    def __init__(
        self,
        store: TTLStore | None = None,
        granted_permissions: Iterable[str] | SkillPolicy = (),
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        deps: SkillDependencies | None = None,
        disabled: Iterable[str] = (),
        config_overrides: dict[str, dict[str, Any]] | None = None,
    ):
        self.store = store
        if isinstance(granted_permissions, SkillPolicy):
            self.policy = granted_permissions
        else:
            self.policy = SkillPolicy.from_names(granted_permissions)
        self.timeout_seconds = timeout_seconds
        self.deps = deps or SkillDependencies(store=store)
        self._disabled = set(disabled)
        self._overrides = config_overrides or {}
        self._entries: dict[str, _Entry] = {}
        self._abandoned: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(
        self,
        skill: Skill,
        config: dict[str, Any] | None = None,
        strict: bool = False,
    ) -> bool:
        """
        Register and, if permitted, activate a skill.

        Args:
            skill: Skill instance.
            config: Configuration values, validated against the manifest.
            strict: Raise SkillPermissionError instead of recording a refusal.

        Returns:
            True if the skill was activated.

        Raises:
            SkillRegistrationError: A skill with the same id is registered.
        """
        skill_id = skill.id
        if skill_id in self._entries:
            raise SkillRegistrationError(skill_id, f"Skill {skill_id} is already registered")

        overrides = {**self._overrides.get(skill_id, {}), **(config or {})}
        entry = _Entry(
            skill=skill,
            enabled=skill_id not in self._disabled,
            overrides=overrides,
        )
        self._entries[skill_id] = entry

        check = self.policy.check(skill.manifest)
        if not check.allowed:
            error = SkillPermissionError(skill_id, check.missing)
            entry.refused_reason = str(error)
            logger.warning(f"Refusing to activate skill {skill_id}: {error}")
            if strict:
                raise error
            return False

        await skill.activate(self.deps, overrides)
        logger.info(f"Registered skill: {skill.manifest.name} ({skill_id} v{skill.manifest.version})")
        return True

    async def unregister(self, skill_id: str) -> None:
        entry = self._require(skill_id)
        if entry.skill.state == SkillState.ACTIVATED:
            await entry.skill.deactivate()
        del self._entries[skill_id]
        logger.info(f"Unregistered skill: {skill_id}")

    async def shutdown(self) -> None:
        """Cancel skills still running past their timeout and deactivate every activated skill."""
        for task in list(self._abandoned):
            task.cancel()
        if self._abandoned:
            await asyncio.gather(*self._abandoned, return_exceptions=True)

        for entry in self._entries.values():
            if entry.skill.state == SkillState.ACTIVATED:
                await entry.skill.deactivate()

    def _require(self, skill_id: str) -> _Entry:
        entry = self._entries.get(skill_id)
        if entry is None:
            raise SkillRegistrationError(skill_id, f"Unknown skill: {skill_id}")
        return entry

    def get_skill(self, skill_id: str) -> Skill | None:
        entry = self._entries.get(skill_id)
        return entry.skill if entry else None

    def __contains__(self, skill_id: str) -> bool:
        return skill_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Enabled set and configuration
    # ------------------------------------------------------------------

    async def enable(self, skill_id: str) -> None:
        self._require(skill_id).enabled = True
        await self._save_enabled()
        logger.info(f"Enabled skill: {skill_id}")

    async def disable(self, skill_id: str) -> None:
        self._require(skill_id).enabled = False
        await self._save_enabled()
        logger.info(f"Disabled skill: {skill_id}")

    def is_enabled(self, skill_id: str) -> bool:
        entry = self._entries.get(skill_id)
        return bool(entry and entry.enabled)

    def enabled_ids(self) -> list[str]:
        return sorted(sid for sid, entry in self._entries.items() if entry.enabled)

    async def _save_enabled(self) -> None:
        if self.store is not None:
            await self.store.set(StoreKeys.SKILLS_ENABLED, self.enabled_ids())

    async def update_config(self, skill_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """
        Merge values into a skill's configuration and persist the result.

        Invalid values fall back to field defaults; nothing raises for a
        bad value.
        """
        entry = self._require(skill_id)
        resolved = entry.skill.update_config({**entry.skill.config, **values})
        entry.overrides = dict(resolved)
        if self.store is not None:
            await self.store.set(StoreKeys.skill_config(skill_id), resolved)
        logger.info(f"Updated config for skill {skill_id}")
        return resolved

    def get_config(self, skill_id: str) -> dict[str, Any]:
        return dict(self._require(skill_id).skill.config)

    async def load_state(self) -> None:
        """
        Apply the persisted enabled set and configurations.

        An absent or empty enabled set means every skill is enabled.
        Skills named in the static `disabled` list stay disabled.
        """
        if self.store is None:
            return

        enabled = await self.store.get(StoreKeys.SKILLS_ENABLED)
        enabled_set = set(enabled) if isinstance(enabled, list) else set()

        for skill_id, entry in self._entries.items():
            if skill_id in self._disabled:
                entry.enabled = False
            else:
                entry.enabled = not enabled_set or skill_id in enabled_set

            stored = await self.store.get(StoreKeys.skill_config(skill_id))
            if isinstance(stored, dict):
                entry.overrides = {**entry.overrides, **stored}
                entry.skill.update_config(entry.overrides)

        logger.debug(f"Loaded skill state: {len(self.enabled_ids())}/{len(self._entries)} enabled")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def list_skills(self) -> list[SkillInfo]:
        infos = []
        for skill_id in sorted(self._entries):
            entry = self._entries[skill_id]
            manifest = entry.skill.manifest
            infos.append(SkillInfo(
                id=skill_id,
                name=manifest.name,
                version=manifest.version,
                description=manifest.description,
                state=entry.skill.state,
                enabled=entry.enabled,
                health=entry.health,
                permissions=[p.value for p in manifest.permissions],
                config=dict(entry.skill.config),
                refused_reason=entry.refused_reason,
                manifest=manifest,
            ))
        return infos

    def get_health(self, skill_id: str) -> SkillHealth:
        return self._require(skill_id).health

    def get_statistics(self) -> dict[str, dict[str, Any]]:
        return {
            skill_id: {
                "runs": entry.runs,
                "failures": entry.failures,
                "timeouts": entry.timeouts,
                "health": entry.health.value,
                "last_error": entry.last_error,
            }
            for skill_id, entry in self._entries.items()
        }

    async def health_check_all(self) -> dict[str, SkillHealth]:
        """
        Run every activated skill's health check.

        A failing check marks the skill unhealthy and keeps it out of
        execution until a later check passes.
        """
        results: dict[str, SkillHealth] = {}
        for skill_id, entry in self._entries.items():
            if entry.skill.state != SkillState.ACTIVATED:
                continue
            try:
                health = await asyncio.wait_for(
                    entry.skill.health_check(), timeout=self.timeout_seconds
                )
            except asyncio.TimeoutError:
                health = SkillHealth.UNHEALTHY
            except Exception as e:
                logger.warning(f"Health check failed for skill {skill_id}: {e}")
                health = SkillHealth.UNHEALTHY
            entry.health = health
            results[skill_id] = health
        return results

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_enabled(
        self, context: SkillExecutionContext
    ) -> dict[str, SkillExecutionResult]:
        """
        Run every enabled, activated, non-unhealthy skill concurrently.

        Each skill is bounded by its own timeout; a thrown error or a
        timeout becomes an empty result tagged with the failure. A timed-out
        skill is not cancelled, its late result is simply dropped. Returns
        once every skill has settled or timed out.
        """
        entries = [entry for entry in self._entries.values() if entry.runnable]
        if not entries:
            return {}

        results = await asyncio.gather(*(self._run_one(entry, context) for entry in entries))
        return {result.skill_id: result for result in results}

    async def _run_one(
        self, entry: _Entry, context: SkillExecutionContext
    ) -> SkillExecutionResult:
        skill_id = entry.skill.id
        start = time.time()
        entry.runs += 1

        task = asyncio.ensure_future(entry.skill.execute(context))
        try:
            result = await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self._abandon(skill_id, task)
            timeout = SkillTimeout(skill_id, self.timeout_seconds)
            entry.timeouts += 1
            entry.health = SkillHealth.DEGRADED
            entry.last_error = str(timeout)
            logger.warning(entry.last_error)
            return SkillExecutionResult.empty(
                skill_id,
                latency_ms=(time.time() - start) * 1000,
                error=entry.last_error,
                timed_out=True,
            )
        except StoreUnavailable as e:
            return self._failed(entry, start, f"store unavailable: {e}")
        except Exception as e:
            return self._failed(entry, start, str(e) or type(e).__name__)

        if entry.health == SkillHealth.DEGRADED:
            entry.health = SkillHealth.HEALTHY
        return result

    def _failed(self, entry: _Entry, start: float, error: str) -> SkillExecutionResult:
        entry.failures += 1
        entry.health = SkillHealth.DEGRADED
        entry.last_error = error
        logger.warning(f"Skill {entry.skill.id} failed: {error}")
        return SkillExecutionResult.empty(
            entry.skill.id,
            latency_ms=(time.time() - start) * 1000,
            error=error,
        )

    def _abandon(self, skill_id: str, task: asyncio.Task) -> None:
        """Stop waiting for a timed-out skill; it is left to finish on its own."""
        self._abandoned.add(task)

        def finished(done: asyncio.Task) -> None:
            self._abandoned.discard(done)
            if not done.cancelled() and done.exception() is not None:
                logger.debug(f"Skill {skill_id} failed after its timeout: {done.exception()}")

        task.add_done_callback(finished)
