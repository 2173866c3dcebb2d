"""
Configuration management using pydantic-settings.
Loads configuration from environment variables and .env file.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database Configuration
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "docgen"

    # Database Connection Pool Settings
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30
    DATABASE_POOL_PRE_PING: bool = True
    DATABASE_POOL_RECYCLE: int = 3600  # seconds
    DATABASE_ECHO: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from individual components."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Job Polling
    GENERATION_POLLING_ENABLED: bool = True
    GENERATION_POLLING_INTERVAL_MS: int = 5000
    GENERATION_MAX_CONCURRENT_JOBS: int = 10
    GENERATION_CLAIM_BATCH_SIZE: int = 1

    # Generation Jobs
    GENERATION_JOB_RETENTION_DAYS: int = 7  # drives expires_at
    GENERATION_DOCUMENT_RETENTION_DAYS: int = 30
    GENERATION_MAX_DOCUMENT_SIZE_MB: int = 50
    GENERATION_BATCH_CHUNK_SIZE: int = 0  # 0 = never split a batch into several requests
    GENERATION_DEFAULT_EXPRESSION_LANGUAGE: Literal["simple_path", "jsonata", "python"] = "simple_path"

    # Partition Maintenance
    PARTITIONS_ENABLED: bool = True
    PARTITIONS_RETENTION_MONTHS: int = 3
    PARTITIONS_FUTURE_MONTHS: int = 6
    PARTITIONS_MAINTENANCE_INTERVAL_SECONDS: int = 86400

    # Cleanup
    CLEANUP_INTERVAL_SECONDS: int = 86400
    BATCH_RECONCILE_INTERVAL_SECONDS: int = 300

    # Template Catalog
    TEMPLATE_CATALOG: Literal["database", "directory"] = "database"
    TEMPLATE_CATALOG_DIR: str = "config/templates"

    # Fonts (optional directory of .ttf files, registered by family name)
    FONTS_DIR: str | None = None

    # Application Configuration
    APP_NAME: str = "Document Generation Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # API Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_V1_PREFIX: str = "/api/v1"

    @property
    def max_document_size_bytes(self) -> int:
        """Get max generated document size in bytes."""
        return self.GENERATION_MAX_DOCUMENT_SIZE_MB * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
