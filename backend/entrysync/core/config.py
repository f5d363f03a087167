from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Entry Sync Service"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./entrysync.db"
    DATABASE_ECHO: bool = False

    # Draft cache settings
    DRAFT_STORAGE_DIR: str = "./.drafts"

    # Auto-save settings
    AUTOSAVE_BATCH_THRESHOLD: int = 5
    AUTOSAVE_DEBOUNCE_SECONDS: float = 2.0

    # Read view cache
    READ_CACHE_TTL_SECONDS: float = 60.0

    # Remote store client
    REMOTE_BASE_URL: str = "http://localhost:8000"
    REMOTE_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        return v

    @field_validator("AUTOSAVE_BATCH_THRESHOLD")
    @classmethod
    def validate_batch_threshold(cls, v):
        if v <= 0:
            raise ValueError("AUTOSAVE_BATCH_THRESHOLD must be positive")
        return v

    @field_validator("AUTOSAVE_DEBOUNCE_SECONDS", "READ_CACHE_TTL_SECONDS", "REMOTE_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive_seconds(cls, v):
        if v <= 0:
            raise ValueError("duration settings must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()


def get_settings() -> Settings:
    return Settings()
