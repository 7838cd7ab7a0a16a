"""
Pytest configuration and shared fixtures for replygate tests.
"""

import asyncio
import sys
import time
from pathlib import Path
from typing import Any, Callable

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from replygate.config.schema import GateConfig
from replygate.errors import StoreUnavailable
from replygate.gating.engine import GateEngine
from replygate.providers.base import LLMProvider, LLMResponse
from replygate.retrieval.models import ScoredCandidate
from replygate.retrieval.providers import KeywordSearchProvider, SemanticSearchProvider
from replygate.skills.base import ConfigField, Permission, Skill, SkillHealth, SkillManifest
from replygate.store.memory import MemoryStore

# 2024-01-01 12:00:00 UTC
START_TIME = 1704110400.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set_utc(self, hour: int, minute: int = 0) -> None:
        """Move to hour:minute UTC on the start day."""
        day_start = START_TIME - START_TIME % 86400
        self.now = day_start + hour * 3600 + minute * 60


class FlakyStore(MemoryStore):
    """
    MemoryStore that raises StoreUnavailable on demand.

    `fail_methods` fails every call of the named methods. `fail_keys` fails
    writes to the listed keys `fail_times` times each (None = always).
    """

    def __init__(self, clock: Callable[[], float] | None = None):
        super().__init__(clock)
        self.fail_methods: set[str] = set()
        self.fail_keys: set[str] = set()
        self.fail_times: int | None = None
        self._key_failures: dict[str, int] = {}

    def _check(self, method: str, key: str | None = None) -> None:
        if method in self.fail_methods:
            raise StoreUnavailable(f"{method} failed", key=key)
        if key is not None and key in self.fail_keys and method == "set":
            count = self._key_failures.get(key, 0)
            if self.fail_times is None or count < self.fail_times:
                self._key_failures[key] = count + 1
                raise StoreUnavailable(f"write to {key} failed", key=key)

    async def get(self, key: str) -> Any | None:
        self._check("get", key)
        return await super().get(key)

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self._check("set", key)
        await super().set(key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        self._check("delete", key)
        return await super().delete(key)

    async def scan(self, prefix: str) -> list[str]:
        self._check("scan")
        return await super().scan(prefix)

    async def incr(self, key: str, amount: int = 1) -> int:
        self._check("incr", key)
        return await super().incr(key, amount)


class FakeProvider(LLMProvider):
    """LLM provider returning scripted responses and recording calls."""

    def __init__(self, responses: list[Any] | None = None):
        super().__init__()
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    async def chat(self, messages, model=None, max_tokens=1024, temperature=0.7) -> LLMResponse:
        self.calls.append({
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        response = self.responses.pop(0) if self.responses else "substantive"
        if isinstance(response, Exception):
            raise response
        if isinstance(response, LLMResponse):
            return response
        return LLMResponse(content=response, usage={"prompt_tokens": 40, "completion_tokens": 2})

    def get_default_model(self) -> str:
        return "fake/model"


class FakeSearch:
    """Canned per-category search results with a call log."""

    def __init__(self, results: dict[str, list[ScoredCandidate]] | None = None, error: Exception | None = None):
        self.results = results or {}
        self.error = error
        self.calls: list[tuple[str, int, float]] = []

    async def search(self, query, contact_id, category, top_k, min_score):
        self.calls.append((category, top_k, min_score))
        if self.error is not None:
            raise self.error
        return list(self.results.get(category, []))


class FakeSemanticSearch(FakeSearch, SemanticSearchProvider):
    pass


class FakeKeywordSearch(FakeSearch, KeywordSearchProvider):
    pass


def candidate(name: str, score: float, kind: str, **attributes) -> ScoredCandidate:
    return ScoredCandidate(name=name, score=score, category=kind, attributes=attributes)


SCRIPTED_FIELDS = (
    ConfigField(key="enabled", type="boolean", label="Enabled", default=True),
    ConfigField(key="limit", type="number", label="Limit", default=10),
    ConfigField(key="label", type="string", label="Label", default="plain"),
    ConfigField(key="tone", type="select", label="Tone", default="casual", options=("casual", "formal")),
)


class ScriptedSkill(Skill):
    """Skill whose delay, error and health are set per test."""

    def __init__(
        self,
        skill_id="scripted",
        delay=0.0,
        error=None,
        permissions=(Permission.REDIS_READ,),
        healthy=True,
    ):
        self._manifest = SkillManifest(
            id=skill_id,
            name=skill_id.title(),
            version="1.0.0",
            description="Scripted test skill",
            config_fields=SCRIPTED_FIELDS,
            permissions=tuple(permissions),
        )
        super().__init__()
        self.delay = delay
        self.error = error
        self.healthy = healthy
        self.executions = 0
        self.cancelled = False

    @property
    def manifest(self):
        return self._manifest

    async def execute(self, context):
        self.ensure_activated()
        start = time.time()
        self.executions += 1
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return self.build_result(
            start,
            context=f"{self.id} for {context.contact_id}",
            data={"limit": self.get_config("limit", context)},
            item_count=1,
        )

    async def health_check(self):
        return SkillHealth.HEALTHY if self.healthy else SkillHealth.UNHEALTHY


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def flaky_store(clock):
    return FlakyStore(clock=clock)


@pytest.fixture
def gate(store, clock):
    return GateEngine(store, GateConfig(), clock=clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    config = tmp_path / "config"
    config.mkdir()
    return config
