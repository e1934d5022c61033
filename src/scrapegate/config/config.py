"""
Configuration management for scrapegate using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrapegate.protocols import Proxy

# --- Setup Logging ---
log = logging.getLogger(__name__)

# Field-by-field defaults for the levels that are always enforced.
DEFAULT_LEVELS: Dict[str, Dict[str, int]] = {
    "proxy": {"max_requests": 1, "delay_ms": 500},
    "domain": {"max_requests": 1, "delay_ms": 1000},
}

_ALIASES = {
    "maxRequests": "max_requests",
    "delay": "delay_ms",
    "delayMs": "delay_ms",
}

# --- Nested Configuration Models ---


class LevelConfig(BaseModel):
    """Concurrency and rate limit for a single level."""

    max_requests: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("max_requests", "maxRequests"),
        description="Maximum in-flight requests at this level.",
    )
    delay_ms: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("delay_ms", "delayMs", "delay"),
        description="Minimum delay in milliseconds between two dispatch starts.",
    )


def _canonical_level(value: Any) -> Any:
    if isinstance(value, dict):
        return {_ALIASES.get(key, key): item for key, item in value.items()}
    if isinstance(value, LevelConfig):
        return value.model_dump()
    return value


class ConcurrencyConfig(BaseModel):
    """Limits for the project, proxy, domain and session levels plus the proxy pool."""

    project: Optional[LevelConfig] = Field(default=None, description="Whole-job limit. None disables it.")
    proxy: LevelConfig = Field(default_factory=lambda: LevelConfig(**DEFAULT_LEVELS["proxy"]))
    domain: LevelConfig = Field(default_factory=lambda: LevelConfig(**DEFAULT_LEVELS["domain"]))
    session: Optional[LevelConfig] = Field(default=None, description="Proxy+host limit. None disables it.")
    proxy_pool: List[Optional[Proxy]] = Field(
        default_factory=lambda: [None],
        validation_alias=AliasChoices("proxy_pool", "proxyPool"),
        description="Outbound proxies, or a single null entry for direct connections.",
    )

    @model_validator(mode="before")
    @classmethod
    def merge_level_defaults(cls, data: Any) -> Any:
        """Merge partially specified proxy/domain levels over their defaults."""
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        for level, defaults in DEFAULT_LEVELS.items():
            value = _canonical_level(merged.get(level))
            if isinstance(value, dict):
                merged[level] = {**defaults, **value}
        for level in ("project", "session"):
            if level in merged:
                merged[level] = _canonical_level(merged[level])
        return merged

    @field_validator("proxy_pool")
    @classmethod
    def validate_proxy_pool(cls, v: List[Optional[Proxy]]) -> List[Optional[Proxy]]:
        if not v:
            raise ValueError("proxy_pool must contain at least one entry")
        if None in v and len(v) > 1:
            raise ValueError("a null proxy_pool entry is only allowed as the sole entry")
        return v

    def levels(self) -> Dict[str, Optional[LevelConfig]]:
        return {"project": self.project, "proxy": self.proxy, "domain": self.domain, "session": self.session}


class ScraperConfig(BaseModel):
    """Settings for the scrape loop driving the admission controller."""

    workers: int = Field(default=5, ge=1, description="Number of concurrent worker tasks.")
    min_check_interval_ms: int = Field(
        default=10, ge=1, description="Lower bound for the wait after a concurrency block."
    )
    empty_backoff_base_ms: int = Field(
        default=250, ge=1, description="Initial wait when the queue has no ready resources."
    )
    empty_backoff_max_ms: int = Field(default=5000, ge=1, description="Upper bound for the empty-queue backoff.")
    report_interval_s: Optional[float] = Field(
        default=None, gt=0, description="Seconds between progress reports. None to disable."
    )

    @model_validator(mode="after")
    def check_backoff_bounds(self) -> "ScraperConfig":
        if self.empty_backoff_max_ms < self.empty_backoff_base_ms:
            raise ValueError("empty_backoff_max_ms must be >= empty_backoff_base_ms")
        return self


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    prometheus_port: int | None = Field(
        default=None,
        description="Port for Prometheus metrics exporter. None to disable.",
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "scrapegate"
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="SCRAPEGATE_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "scrapegate.yaml", current_dir / "scrapegate.yml"):
        if path.exists():
            return path
    return None
