from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Configuration.
    Reads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # Functionality
    ENVIRONMENT: Literal["development", "production", "testing"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Backend REST API
    API_BASE_URL: str = "http://localhost:5200/api"
    API_TOKEN: str = ""  # Bearer token of the logged-in portal user
    HTTP_TIMEOUT: float = 10.0
    INCIDENT_PAGE_SIZE: int = 100

    # Push notifications (NATS)
    NATS_URL: str = "nats://localhost:4222"
    NATS_CLIENT_ID: str = "he-core-1"
    PUSH_SUBJECT_PREFIX: str = "hazardeye"

    # Sync / views
    REFRESH_INTERVAL: int = 0  # Seconds between full reloads; 0 disables periodic refresh
    DUE_SOON_HOURS: int = 48


settings = Settings()
