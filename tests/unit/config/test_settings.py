# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from copilens.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_cache(self):
        s = Settings(_env_file=None)
        assert s.expiry_time_ms == 300_000
        assert s.max_cache_size == 100
        assert s.cleanup_interval_ms == 60_000
        assert s.enable_content_hashing is True
        assert s.enable_position_sensitive is False

    def test_default_concurrency(self):
        s = Settings(_env_file=None)
        assert s.max_concurrency == 3
        assert s.debounce_wait_ms == 3000
        assert (s.retry_interval_ms, s.retry_deadline_ms) == (1500, 15_000)

    def test_default_watcher(self):
        s = Settings(_env_file=None)
        assert s.watch_only_cached_files is True
        assert "node_modules" in s.watcher_exclude_dirs_list
        assert s.watcher_patterns_list == ["*.java"]
        assert s.workspace_root is None


class TestSettingsValidation:
    def test_zero_cache_size(self):
        with pytest.raises(ConfigurationError, match="MAX_CACHE_SIZE"):
            Settings(_env_file=None, max_cache_size=0)

    def test_zero_concurrency(self):
        with pytest.raises(ConfigurationError, match="MAX_CONCURRENCY"):
            Settings(_env_file=None, max_concurrency=0)

    def test_retry_deadline_below_interval(self):
        with pytest.raises(ConfigurationError, match="RETRY_DEADLINE_MS"):
            Settings(_env_file=None, retry_interval_ms=2000, retry_deadline_ms=1000)

    def test_errors_are_aggregated(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, expiry_time_ms=0, cleanup_interval_ms=0)
        assert "EXPIRY_TIME_MS" in str(exc_info.value)
        assert "CLEANUP_INTERVAL_MS" in str(exc_info.value)

    def test_negative_caret_distance(self):
        with pytest.raises(ValidationError, match="max_caret_distance"):
            Settings(_env_file=None, max_caret_distance=-1)

    def test_unknown_format(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, inspection_format="xml")


class TestEnvironment:
    def test_env_variables(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENCY", "5")
        monkeypatch.setenv("WATCHER_PATTERNS", "*.java, *.kt")
        s = Settings(_env_file=None)
        assert s.max_concurrency == 5
        assert s.watcher_patterns_list == ["*.java", "*.kt"]

    def test_env_file(self, tmp_path: Path):
        env = tmp_path / ".env"
        env.write_text("DEBOUNCE_WAIT_MS=250\nLOG_FORMAT=json\n", encoding="utf-8")
        s = Settings(_env_file=env)
        assert s.debounce_wait_ms == 250
        assert s.log_format == "json"


class TestLoadSettings:
    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(max_cache_size=7, workspace_root=str(tmp_path))
        assert s.max_cache_size == 7
        assert s.workspace_root == tmp_path
