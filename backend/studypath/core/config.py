"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_NAME: str = "StudyPath"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENV: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./studypath.db"
    DATABASE_ECHO: bool = False

    # AI
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.7

    # Calendar
    TIMEZONE: str = "UTC"
    DEFAULT_STUDY_DAYS: list[int] = [1, 2, 3, 4, 5]

    # Progress tracking
    RESOURCE_AUTO_COMPLETE_SECONDS: int = 5

    # Calibration
    MISSED_SKIP_LIMIT: int = 2

    # Lenient single-item session when daily activity generation fails.
    # Roadmap and week generation never fall back.
    DAILY_FALLBACK_ENABLED: bool = False

    # Mistake stack
    MISTAKE_PRACTICE_LIMIT: int = 40

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
