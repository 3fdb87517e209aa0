"""Unit tests for environment settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from viscomp_io.settings import ViscompSettings, get_settings


@pytest.mark.unit
def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """VISCOMP_* variables populate the settings."""
    monkeypatch.setenv("VISCOMP_API_URL", "https://compiler.example.com/api")
    monkeypatch.setenv("VISCOMP_API_TOKEN", "tok-123456")
    monkeypatch.setenv("VISCOMP_PROJECT", "demo")
    settings = get_settings()
    assert settings.api_url == "https://compiler.example.com/api"
    assert settings.project == "demo"
    assert settings.token_value() == "tok-123456"
    assert "tok-123456" not in repr(settings)


@pytest.mark.unit
def test_settings_default_to_none(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """Without environment variables nothing is overridden."""
    monkeypatch.chdir(tmp_path)
    settings = ViscompSettings()
    assert settings.api_url is None
    assert settings.token_value() is None


@pytest.mark.unit
def test_empty_token_counts_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    """A blank token is treated as missing."""
    monkeypatch.setenv("VISCOMP_API_TOKEN", "")
    assert ViscompSettings().token_value() is None


@pytest.mark.unit
def test_settings_are_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    """The cached instance is reused until cleared."""
    first = get_settings()
    monkeypatch.setenv("VISCOMP_PROJECT", "other")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().project == "other"
