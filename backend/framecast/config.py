from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Framecast application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "Framecast"
    DEBUG: bool = True

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "framecast"
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (notifications) ---
    REDIS_URL: str = "redis://localhost:6379/0"
    ENABLE_NOTIFICATIONS: bool = True

    # --- Media Volume (object storage) ---
    MEDIA_VOLUME: str = "media_volume"
    MEDIA_BASE_URL: str = "http://localhost:8000/media"

    # --- Leonardo ---
    LEONARDO_API_KEY: str = ""
    LEONARDO_BASE_URL: str = "https://cloud.leonardo.ai/api/rest/v1"

    # --- Runway ---
    RUNWAY_API_KEY: str = ""
    RUNWAY_BASE_URL: str = "https://api.dev.runwayml.com"
    RUNWAY_API_VERSION: str = "2024-11-06"

    # --- Kling (access key + secret key, signed into a JWT) ---
    KLING_ACCESS_KEY: str = ""
    KLING_SECRET_KEY: str = ""
    KLING_BASE_URL: str = "https://api-singapore.klingai.com"

    # --- OpenAI images ---
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"

    # --- ElevenLabs ---
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_BASE_URL: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_VOICE_ID: str = "21m00Tcm4TlvDq8ikWAM"

    # --- Polling ---
    POLL_MAX_ATTEMPTS: int = 60
    POLL_INTERVAL_LIGHT: float = 2.0   # image status checks
    POLL_INTERVAL_HEAVY: float = 5.0   # video generation

    # --- Uploads ---
    UPLOAD_SETTLE_SECONDS: float = 5.0

    # --- HTTP ---
    HTTP_TIMEOUT: float = 60.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
