"""Configuration management for SplitBiller."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SplitBiller API
    splitbiller_api_url: str = "http://localhost:5000"
    request_timeout: float = 30.0

    # Invitation polling interval in seconds
    notification_poll_interval: float = 30.0

    # Session store
    database_path: Path = Path.home() / ".splitbiller" / "splitbiller.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings. Check the SPLITBILLER_API_URL, "
            f"REQUEST_TIMEOUT, NOTIFICATION_POLL_INTERVAL and DATABASE_PATH "
            f"variables in your environment or .env file.\n"
            f"Error: {e}"
        ) from e
