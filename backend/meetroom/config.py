import sys
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    APP_NAME: str = "MeetRoom Signaling"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Logging
    LOG_LEVEL: str = "INFO"  # TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Room lifecycle
    ROOM_EMPTY_GRACE_SECONDS: float = 60.0  # Empty rooms are destroyed after this window
    MESSAGE_HISTORY_LIMIT: int = 100
    JOIN_REPLAY_LIMIT: int = 50
    RECENT_MESSAGE_DIGEST: int = 5

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    CREATE_ROOM_LIMIT: int = 30  # per minute per client
    WS_CHAT_MESSAGE_LIMIT: int = 60  # per minute per connection
    WS_CHAT_BURST_LIMIT: int = 10  # per second per connection
    WS_DEFAULT_MESSAGE_LIMIT: int = 600
    WS_DEFAULT_BURST_LIMIT: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("ROOM_EMPTY_GRACE_SECONDS")
    @classmethod
    def validate_grace_window(cls, v: float) -> float:
        """The grace window must be non-negative."""
        if v < 0:
            raise ValueError("ROOM_EMPTY_GRACE_SECONDS must be >= 0")
        return v

    @field_validator("MESSAGE_HISTORY_LIMIT", "JOIN_REPLAY_LIMIT", "RECENT_MESSAGE_DIGEST")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("history limits must be at least 1")
        return v

    def get_cors_origins(self) -> list[str]:
        return self.CORS_ORIGINS


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Exits the process if configuration is invalid.
    """
    try:
        return Settings()
    except Exception as e:
        print(f"\n{'='*70}")
        print(f"CONFIGURATION ERROR: {e}")
        print(f"{'='*70}\n")
        sys.exit(1)


settings = get_settings()
