"""
Application configuration using Pydantic Settings.
Loads from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "MediQueue Walk-in Queue"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "mediqueue"

    # Queue
    CLINIC_TIMEZONE: str = "UTC"  # clinic-day boundary is midnight in this zone
    DEFAULT_AVG_WAIT_MINUTES: float = 15
    DEFAULT_MAX_QUEUE_SIZE: int = 50
    DEFAULT_GEOFENCE_METERS: float = 500
    CALL_NEXT_MAX_RETRIES: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
