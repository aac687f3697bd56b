"""Tests for configuration validation."""

import pytest

from src.core.config import Settings, constants


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(_env_file=None, openrouter_api_key="sk-test")

    result = settings.require_credential("openrouter_api_key", "OpenRouter API key")

    assert result == "sk-test"


def test_require_credential_with_none_raises_error() -> None:
    """Test require_credential raises ValueError when credential is None."""
    settings = Settings(_env_file=None, openrouter_api_key=None)

    with pytest.raises(ValueError, match="OpenRouter API key credential not configured"):
        settings.require_credential("openrouter_api_key", "OpenRouter API key")


def test_require_credential_with_empty_string_raises_error() -> None:
    """Test require_credential raises ValueError when credential is empty."""
    settings = Settings(_env_file=None, dictionary_app_key="")

    with pytest.raises(ValueError, match="DICTIONARY_APP_KEY"):
        settings.require_credential("dictionary_app_key", "Dictionary API key")


def test_defaults() -> None:
    """Test defaults that let the service start without a dictionary."""
    settings = Settings(_env_file=None)

    assert settings.sqlite_db_path == "data/norush.db"
    assert settings.dictionary_source == "oxford"
    assert settings.daily_close_out_hour == 0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are read from environment variables case-insensitively."""
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("daily_close_out_hour", "3")

    settings = Settings(_env_file=None)

    assert settings.sqlite_db_path == "/tmp/other.db"
    assert settings.daily_close_out_hour == 3


def test_thresholds() -> None:
    """Test the repetition and evaluation thresholds."""
    assert constants.SENTENCE_SIMILARITY_THRESHOLD == 0.85
    assert constants.PARAGRAPH_SIMILARITY_THRESHOLD == 0.70
    assert constants.FALLBACK_QUALITY_SCORE == 50
    assert constants.EDITOR_TRAILING_WINDOW == 5
