"""Configuration management for the benchmark harness."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_SIZE_PRESETS: dict[str, int] = {
    "small": 1_000,
    "medium": 10_000,
    "large": 100_000,
    "xlarge": 1_000_000,
}

DEFAULT_ADAPTERS = ["memory", "sqlite", "key_value"]
DEFAULT_SCENARIOS = ["insert", "query", "update", "delete", "aggregate", "transaction"]


class BenchmarkConfig(BaseModel):
    """What to run: dataset shape, iteration counts, adapters and scenarios."""

    iterations: int = Field(default=3, ge=1, description="Measured iterations per scenario")
    warmup: int = Field(default=1, ge=0, description="Discarded warm-up iterations")
    data_size: Literal["small", "medium", "large", "xlarge"] | PositiveInt = Field(
        default="medium", description="Dataset preset name or explicit document count"
    )
    adapters: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ADAPTERS), description="Adapters to benchmark"
    )
    scenarios: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCENARIOS), description="Scenarios to run"
    )
    seed: int = Field(default=42, description="Seed for synthetic data generation")
    strict_operators: bool = Field(
        default=False, description="Reject unknown query operators and pipeline stages"
    )

    @field_validator("adapters", "scenarios")
    @classmethod
    def _not_empty(cls, value: list[str]) -> list[str]:
        names = [name.strip() for name in value if name.strip()]
        if not names:
            raise ValueError("at least one name is required")
        return names

    @property
    def document_count(self) -> int:
        """Resolve the dataset size to a document count."""
        if isinstance(self.data_size, str):
            return DATA_SIZE_PRESETS[self.data_size]
        return self.data_size


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")
    metrics_port: int | None = Field(
        default=None, ge=1, le=65535, description="Prometheus metrics port (disabled if unset)"
    )
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="docbench", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for the benchmark harness."""

    model_config = SettingsConfigDict(
        env_prefix="DOCBENCH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
