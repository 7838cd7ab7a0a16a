"""Base types for context-provider skills."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from replygate.errors import SkillNotActivatedError

if TYPE_CHECKING:
    from replygate.history.store import HistoryStore
    from replygate.retrieval.hybrid import HybridRetriever
    from replygate.skills.builtin.persona import PersonaSource
    from replygate.skills.builtin.style import StyleProfileSource
    from replygate.store.base import TTLStore


class Permission(str, Enum):
    """Capabilities a skill may request."""
    REDIS_READ = "redis:read"
    REDIS_WRITE = "redis:write"
    AUTOMEM_READ = "automem:read"
    AUTOMEM_WRITE = "automem:write"
    NETWORK = "network"


class SkillState(str, Enum):
    """Lifecycle of a skill instance."""
    REGISTERED = "registered"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"


class SkillHealth(str, Enum):
    """Result of a health check."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


FIELD_TYPES = ("string", "number", "boolean", "select")


@dataclass(frozen=True)
class ConfigField:
    """One configurable value exposed by a skill."""
    key: str
    type: str
    label: str
    default: Any
    description: str | None = None
    options: tuple[str, ...] | None = None
    required: bool = False

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unknown config field type '{self.type}' for '{self.key}'")
        if self.type == "select" and not self.options:
            raise ValueError(f"Select field '{self.key}' needs options")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "type": self.type,
            "label": self.label,
            "default": self.default,
            "required": self.required,
        }
        if self.description:
            data["description"] = self.description
        if self.options:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class SkillManifest:
    """
    Static declaration of a skill.

    The manifest is the contract a settings surface uses to render and
    validate configuration without knowing skill internals.
    """
    id: str
    name: str
    version: str
    description: str
    config_fields: tuple[ConfigField, ...] = ()
    permissions: tuple[Permission, ...] = ()
    author: str | None = None

    def get_field(self, key: str) -> ConfigField | None:
        for config_field in self.config_fields:
            if config_field.key == key:
                return config_field
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "configFields": [f.to_dict() for f in self.config_fields],
            "permissions": [p.value for p in self.permissions],
        }
        if self.author:
            data["author"] = self.author
        return data


def _coerce(config_field: ConfigField, value: Any) -> tuple[bool, Any]:
    """Return (ok, coerced) for a raw value against a field type."""
    if config_field.type == "number":
        if isinstance(value, bool):
            return False, None
        if isinstance(value, (int, float)):
            return True, value
        if isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                return False, None
            return True, int(number) if number.is_integer() else number
        return False, None

    if config_field.type == "boolean":
        if isinstance(value, bool):
            return True, value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return True, value.strip().lower() == "true"
        return False, None

    if config_field.type == "select":
        if isinstance(value, str) and value in (config_field.options or ()):
            return True, value
        return False, None

    if isinstance(value, str):
        return True, value
    return False, None


def resolve_config(manifest: SkillManifest, values: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate configuration values against a manifest.

    Each field takes the supplied value when it matches the field type
    (and option set, for selects), otherwise the field default. Unknown
    keys are dropped. Never raises.
    """
    values = values or {}
    resolved: dict[str, Any] = {}
    for config_field in manifest.config_fields:
        if config_field.key in values and values[config_field.key] is not None:
            ok, coerced = _coerce(config_field, values[config_field.key])
            resolved[config_field.key] = coerced if ok else config_field.default
        else:
            resolved[config_field.key] = config_field.default
    return resolved


@dataclass(frozen=True)
class SkillExecutionContext:
    """Per-invocation input shared read-only by every skill."""
    contact_id: str
    message_content: str
    relationship_type: str = "acquaintance"
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SkillResultMetadata:
    """Timing and failure tags for one skill result."""
    latency_ms: float = 0.0
    cached: bool = False
    item_count: int = 0
    error: str | None = None
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None or self.timed_out


@dataclass(frozen=True)
class SkillExecutionResult:
    """Output of one skill for one invocation."""
    skill_id: str
    context: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    metadata: SkillResultMetadata = field(default_factory=SkillResultMetadata)

    @classmethod
    def empty(
        cls,
        skill_id: str,
        latency_ms: float = 0.0,
        error: str | None = None,
        timed_out: bool = False,
    ) -> "SkillExecutionResult":
        """Empty-but-valid result used when a skill fails or times out."""
        return cls(
            skill_id=skill_id,
            context=None,
            data={},
            metadata=SkillResultMetadata(
                latency_ms=latency_ms,
                item_count=0,
                error=error,
                timed_out=timed_out,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "skillId": self.skill_id,
            "context": self.context,
            "data": self.data,
            "metadata": {
                "latencyMs": self.metadata.latency_ms,
                "cached": self.metadata.cached,
                "itemCount": self.metadata.item_count,
                "error": self.metadata.error,
                "timedOut": self.metadata.timed_out,
            },
        }


@dataclass
class SkillDependencies:
    """Collaborators handed to a skill at activation."""
    store: "TTLStore | None" = None
    history: "HistoryStore | None" = None
    retriever: "HybridRetriever | None" = None
    profile_source: "StyleProfileSource | None" = None
    persona_source: "PersonaSource | None" = None
    clock: Callable[[], float] = time.time


class Skill(ABC):
    """
    Abstract base class for skills.

    A skill must be activated (by the registry, after its permissions
    were checked) before execute() may be called.
    """

    def __init__(self) -> None:
        self.state = SkillState.REGISTERED
        self.deps = SkillDependencies()
        self.config: dict[str, Any] = resolve_config(self.manifest, {})

    @property
    @abstractmethod
    def manifest(self) -> SkillManifest:
        """Static skill declaration."""
        pass

    @property
    def id(self) -> str:
        return self.manifest.id

    async def activate(
        self,
        deps: SkillDependencies,
        config: dict[str, Any] | None = None,
    ) -> None:
        """Bind dependencies and resolved configuration."""
        self.deps = deps
        self.config = resolve_config(self.manifest, config)
        self.state = SkillState.ACTIVATED

    async def deactivate(self) -> None:
        self.state = SkillState.DEACTIVATED

    def update_config(self, config: dict[str, Any] | None) -> dict[str, Any]:
        self.config = resolve_config(self.manifest, config)
        return self.config

    def get_config(self, key: str, context: SkillExecutionContext | None = None) -> Any:
        """Per-invocation override first, then the activated configuration."""
        if context is not None and key in context.config:
            config_field = self.manifest.get_field(key)
            if config_field is not None:
                ok, coerced = _coerce(config_field, context.config[key])
                if ok:
                    return coerced
        return self.config.get(key)

    def ensure_activated(self) -> None:
        if self.state != SkillState.ACTIVATED:
            raise SkillNotActivatedError(self.id)

    @abstractmethod
    async def execute(self, context: SkillExecutionContext) -> SkillExecutionResult:
        """
        Produce context for one message.

        Args:
            context: Shared per-invocation context.

        Returns:
            SkillExecutionResult for this skill.
        """
        pass

    async def health_check(self) -> SkillHealth:
        return SkillHealth.HEALTHY

    def build_result(
        self,
        start: float,
        context: str | None = None,
        data: dict[str, Any] | None = None,
        item_count: int = 0,
        cached: bool = False,
    ) -> SkillExecutionResult:
        """Build a result with latency measured from start (time.time())."""
        return SkillExecutionResult(
            skill_id=self.id,
            context=context,
            data=data or {},
            metadata=SkillResultMetadata(
                latency_ms=(time.time() - start) * 1000,
                cached=cached,
                item_count=item_count,
            ),
        )
