"""Application configuration."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Sarcasm Wiki"
    version: str = "0.1.0"
    api_prefix: str = "/api/v1"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Storage Settings
    CONTENT_DIR: Path = Path("content")
    STATE_DIR: Path = Path(".temp")
    RATE_LIMIT_DIR: Path = Path(".rate-limit")

    # Rate Limiter Settings
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, ge=0)
    LOCK_STALE_SECONDS: float = Field(default=300.0, gt=0)
    LOCK_RETRY_ATTEMPTS: int = Field(default=5, ge=1)
    LOCK_RETRY_DELAY: float = Field(default=0.2, ge=0)
    LOCK_WAIT_TIMEOUT: float = Field(default=300.0, ge=0)
    LOCK_WAIT_DELAY: float = Field(default=1.0, gt=0)

    # Chunking Settings
    MAX_CHUNK_LENGTH: int = Field(default=30000, gt=0)
    MIN_SOURCE_LENGTH: int = Field(default=100, ge=0)
    MIN_RESPONSE_LENGTH: int = Field(default=50, ge=0)

    # Background Processor Settings
    PROCESSOR_ENABLED: bool = True
    PROCESSOR_INTERVAL_SECONDS: float = Field(default=120.0, ge=45, le=3600)
    IMMEDIATE_GENERATION: bool = True

    # LLM Settings
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 32000
    LLM_TIMEOUT: float = 60.0

    # API Keys (comma separated lists are accepted)
    OPENAI_API_KEY: str | None = None
    OPENROUTER_API_KEY: str | None = None
    GEMINI_API_KEY: str | None = None

    # Source Settings
    SITE_URL: str = "https://sarcasm.wiki"
    WIKIPEDIA_API_URL: str = "https://en.wikipedia.org/w/api.php"
    WIKIPEDIA_USER_AGENT: str = "SarcasmWiki/1.0 (https://sarcasm.wiki)"
    WIKIPEDIA_TIMEOUT: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def validate_retry_window(self) -> "Settings":
        """Make sure a waiting worker tries at least once."""
        if self.LOCK_WAIT_TIMEOUT < self.LOCK_WAIT_DELAY:
            self.LOCK_WAIT_TIMEOUT = self.LOCK_WAIT_DELAY
        return self

    @property
    def queue_path(self) -> Path:
        """Path of the persisted generation backlog."""
        return self.STATE_DIR / "generation-queue.json"

    @property
    def stats_path(self) -> Path:
        """Path of the persisted generation counters."""
        return self.STATE_DIR / "generation-stats.json"


def split_api_keys(value: str | None) -> list[str]:
    """Split a comma separated key list, dropping blanks."""
    if not value:
        return []
    return [key.strip() for key in value.split(",") if key.strip()]
