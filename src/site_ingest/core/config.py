"""Application configuration using Pydantic Settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Site Ingest"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "./logs"

    # API
    API_V1_PREFIX: str = "/api/v1"
    API_KEY_NAME: str = "X-API-Key"
    API_KEY_SECRET: str = "changeme"
    CORS_ORIGINS: List[str] = ["*"]

    # Storage
    DATABASE_PATH: str = "./storage/ingest.db"
    STORAGE_DIR: str = "./storage/assets"
    STORAGE_PUBLIC_PATH: str = "/storage"

    # Job runner
    JOBS_CONCURRENCY: int = 2
    JOBS_RETAIN_FINISHED: int = 500
    LIMITER_MAX_CONCURRENCY: int = 50

    # Ingestion bounds
    INGEST_DEFAULT_MAX_URLS: int = 20
    INGEST_MAX_URLS_LIMIT: int = 200
    INGEST_DEFAULT_URL_CONCURRENCY: int = 3
    INGEST_URL_CONCURRENCY_LIMIT: int = 20

    # Extraction services
    PAGES_FINDER_BASE_URL: str = "http://localhost:4001"
    SCREENSHOTTER_BASE_URL: str = "http://localhost:4002"
    TECHNOLOGIES_FINDER_BASE_URL: str = "http://localhost:4003"
    COLORS_EXTRACTOR_BASE_URL: str = "http://localhost:4004"
    CAPABILITY_HTTP_TIMEOUT: Optional[float] = 330.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
