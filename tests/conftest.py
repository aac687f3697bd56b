"""Pytest configuration and shared fixtures."""

import pytest

from src.core.config import Settings


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway database, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        sqlite_db_path=str(tmp_path / "norush.db"),
        openrouter_api_key="sk-test",
        dictionary_app_id="test-app",
        dictionary_app_key="test-key",
    )
