# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for cache, watcher, concurrency, backend and logging
options. Every long-lived object receives its options from one Settings
instance built at session start.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Bounded TTL cache ===
    expiry_time_ms: int = 5 * 60 * 1000
    max_cache_size: int = 100
    cleanup_interval_ms: int = 60 * 1000
    enable_content_hashing: bool = True
    enable_position_sensitive: bool = False
    max_caret_distance: int = 2000

    # === File watching ===
    watch_only_cached_files: bool = True
    watcher_exclude_dirs: str = (
        "node_modules,.git,build,out,target,bin,.gradle,.idea,dist,__pycache__"
    )
    watcher_patterns: str = "*.java"
    workspace_root: Path | None = None

    # === Concurrency ===
    max_concurrency: int = 3
    debounce_wait_ms: int = 3000

    # === Retry ===
    retry_interval_ms: int = 1500
    retry_deadline_ms: int = 15_000

    # === Inspection ===
    inspection_format: Literal["tagged", "json"] = "json"
    java_version: int = 17
    inspection_max_rounds: int = 3

    # === LLM ===
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("max_caret_distance")
    @classmethod
    def validate_caret_distance(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("max_caret_distance must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.max_cache_size < 1:
            errors.append("MAX_CACHE_SIZE must be >= 1")

        if self.max_concurrency < 1:
            errors.append("MAX_CONCURRENCY must be >= 1")

        if self.expiry_time_ms <= 0:
            errors.append("EXPIRY_TIME_MS must be > 0")

        if self.cleanup_interval_ms <= 0:
            errors.append("CLEANUP_INTERVAL_MS must be > 0")

        if self.debounce_wait_ms < 0:
            errors.append("DEBOUNCE_WAIT_MS must be >= 0")

        if self.retry_interval_ms < 0 or self.retry_deadline_ms < self.retry_interval_ms:
            errors.append("RETRY_DEADLINE_MS must be >= RETRY_INTERVAL_MS >= 0")

        if self.inspection_max_rounds < 1:
            errors.append("INSPECTION_MAX_ROUNDS must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def watcher_exclude_dirs_list(self) -> list[str]:
        """Parse comma-separated excluded directory names."""
        return [d.strip() for d in self.watcher_exclude_dirs.split(",") if d.strip()]

    @property
    def watcher_patterns_list(self) -> list[str]:
        """Parse comma-separated watched file patterns."""
        return [p.strip() for p in self.watcher_patterns.split(",") if p.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-session config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
