"""Configuration management for norush."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/norush.db", description="Path to the SQLite database file")

    # Dictionary Lookup Configuration
    dictionary_base_url: str = Field(
        default="https://od-api.oxforddictionaries.com/api/v2",
        description="Base URL of the dictionary entries API",
    )
    dictionary_app_id: str | None = Field(default=None, description="Dictionary API application id")
    dictionary_app_key: str | None = Field(default=None, description="Dictionary API key (heuristic used if unset)")
    dictionary_source: str = Field(default="oxford", description="Source name reported in validation reasons")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for the quality oracle")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Scheduler Configuration
    daily_close_out_hour: int = Field(default=0, description="Hour of day (UTC) when overdue milestones are closed")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value

    # AI Model Configuration
    model_id: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="Model ID for OpenRouter (defaults to Claude 3.5 Sonnet)",
    )
    model_provider: str | None = Field(default=None, description="Restrict OpenRouter routing to one provider")


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    DICTIONARY_TIMEOUT_SECONDS: float = 5.0

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_NOT_FOUND: int = 404

    # Word Validation
    MIN_WORD_LENGTH: int = 2
    MAX_WORD_LENGTH: int = 20

    # Repetition Detection
    WORD_REPETITION_MIN_LIMIT: int = 3
    WORD_REPETITION_RATIO_DIVISOR: int = 20  # no word may exceed ~5% of the text
    SHORT_WORD_LENGTH: int = 2  # words this short are not counted
    SHORT_SENTENCE_LENGTH: int = 10  # fragments this short are discarded
    SHORT_PARAGRAPH_LENGTH: int = 50
    SENTENCE_SIMILARITY_THRESHOLD: float = 0.85
    PARAGRAPH_SIMILARITY_THRESHOLD: float = 0.70
    EXCERPT_LENGTH: int = 50

    # Quality Evaluation
    FALLBACK_QUALITY_SCORE: int = 50
    LOW_QUALITY_SCORE: int = 30
    MAX_RULE_VIOLATIONS: int = 2
    WORD_COUNT_TOLERANCE: float = 0.10

    # Content Metrics (recorded for review, never gating)
    TITLE_KEYWORD_MIN_LENGTH: int = 3  # title words this short are ignored
    RELEVANCE_BASE_SCORE: int = 20
    NEUTRAL_RELEVANCE_SCORE: int = 50
    MIN_TITLE_RELEVANCE_SCORE: int = 60
    MIN_DICTIONARY_COMPLIANCE: float = 90.0
    MAX_SPELLING_ERROR_RATE: float = 25.0
    MAX_REPORTED_MISSPELLINGS: int = 10

    # Editor Session
    EDITOR_DEBOUNCE_SECONDS: float = 0.3
    EDITOR_TRAILING_WINDOW: int = 5


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
