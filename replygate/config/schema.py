"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseModel):
    """TTL store configuration."""
    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = ""  # Prepended to every key (namespacing shared Redis)
    socket_timeout: float = 2.0


class SleepHoursSettings(BaseModel):
    """Default sleep hours, used until an operator stores its own."""
    enabled: bool = False
    start_hour: int = Field(default=23, ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    end_hour: int = Field(default=7, ge=0, le=23)
    end_minute: int = Field(default=0, ge=0, le=59)
    timezone_offset: float = Field(default=0.0, ge=-12, le=14)  # Hours from UTC


class GateConfig(BaseModel):
    """Gating engine configuration."""
    sleep_hours: SleepHoursSettings = Field(default_factory=SleepHoursSettings)
    pause_all_ttl_seconds: int = 86400 * 365  # ~1 year, effectively indefinite
    pause_all_retries: int = 2  # Extra attempts for contacts that failed to pause
    deferred_reset_policy: Literal["reset", "accumulate"] = "reset"
    raise_on_store_error: bool = True


class ClassifierConfig(BaseModel):
    """Phatic/substantive classifier configuration."""
    model: str = "anthropic/claude-haiku-4-5"
    temperature: float = 0.0  # Pinned for deterministic labels
    max_tokens: int = 50
    use_quick_heuristics: bool = True
    simple_response_model: str = ""  # Empty means use the classifier model
    simple_response_temperature: float = 0.7
    simple_response_max_tokens: int = 200


class SkillsConfig(BaseModel):
    """Skill executor configuration."""
    granted_permissions: list[str] = Field(default_factory=lambda: [
        "redis:read", "redis:write", "automem:read",
    ])
    timeout_seconds: float = 5.0  # Per skill, not per pipeline
    disabled: list[str] = Field(default_factory=list)
    config: dict[str, dict[str, Any]] = Field(default_factory=dict)  # skill id -> overrides


class CategoryLimitsConfig(BaseModel):
    """Per-category result limits."""
    topics: int = 10
    people: int = 10
    events: int = 5


class CategoryScoresConfig(BaseModel):
    """Per-category minimum similarity scores."""
    topics: float = 0.7
    people: float = 0.65
    events: float = 0.7


class RerankWeightsConfig(BaseModel):
    """Weights of the reranking score components."""
    similarity: float = 0.5
    recency: float = 0.25
    frequency: float = 0.15
    entity: float = 0.1


class RerankSettings(BaseModel):
    """Reranking of semantic hits."""
    enabled: bool = True
    weights: RerankWeightsConfig = Field(default_factory=RerankWeightsConfig)
    max_results: int = Field(default=10, ge=1)
    min_score: float = Field(default=0.4, ge=0)
    score_drop: float = Field(default=0.3, ge=0, le=1)


class RetrievalSettings(BaseModel):
    """Hybrid retrieval defaults."""
    enabled: bool = True
    top_k: CategoryLimitsConfig = Field(default_factory=CategoryLimitsConfig)
    min_score: CategoryScoresConfig = Field(default_factory=CategoryScoresConfig)
    fallback_threshold: int = 3
    rerank: RerankSettings = Field(default_factory=RerankSettings)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    fallback_models: list[str] = Field(default_factory=list)
    cooldown_seconds: int = 300


class Config(BaseSettings):
    """Root configuration for replygate."""
    store: StoreConfig = Field(default_factory=StoreConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    data_dir: str = "~/.replygate"

    model_config = SettingsConfigDict(
        env_prefix="REPLYGATE_",
        env_nested_delimiter="__",
    )

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.data_dir).expanduser()
