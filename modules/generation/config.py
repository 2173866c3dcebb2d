"""
Generation module configuration.

Centralizes the settings the generation subsystem needs so it can run
standalone (tests, scripts) without reading the environment.
"""

from pathlib import Path
from typing import Optional
from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """
    Configuration for generation module.

    Build from application settings with from_settings(), or construct
    directly in tests.
    """

    # Polling
    polling_enabled: bool = True
    polling_interval_ms: int = 5000
    max_concurrent_jobs: int = 10
    claim_batch_size: int = 1

    # Jobs
    job_retention_days: int = 7
    document_retention_days: int = 30
    max_document_size_mb: int = 50
    batch_chunk_size: int = 0

    # Rendering
    default_expression_language: str = "simple_path"
    fonts_dir: Optional[Path] = None

    def __post_init__(self):
        """Validate numeric ranges."""
        if self.max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        if self.claim_batch_size < 1:
            raise ValueError("claim_batch_size must be at least 1")
        if self.polling_interval_ms < 1:
            raise ValueError("polling_interval_ms must be positive")
        if self.fonts_dir is not None:
            self.fonts_dir = Path(self.fonts_dir)

    @property
    def max_document_size_bytes(self) -> int:
        return self.max_document_size_mb * 1024 * 1024

    @property
    def polling_interval_seconds(self) -> float:
        return self.polling_interval_ms / 1000.0

    @classmethod
    def from_settings(cls, settings) -> "GenerationConfig":
        """
        Build configuration from application settings.

        Args:
            settings: shared.utils.config.Settings instance

        Returns:
            GenerationConfig instance
        """
        return cls(
            polling_enabled=settings.GENERATION_POLLING_ENABLED,
            polling_interval_ms=settings.GENERATION_POLLING_INTERVAL_MS,
            max_concurrent_jobs=settings.GENERATION_MAX_CONCURRENT_JOBS,
            claim_batch_size=settings.GENERATION_CLAIM_BATCH_SIZE,
            job_retention_days=settings.GENERATION_JOB_RETENTION_DAYS,
            document_retention_days=settings.GENERATION_DOCUMENT_RETENTION_DAYS,
            max_document_size_mb=settings.GENERATION_MAX_DOCUMENT_SIZE_MB,
            batch_chunk_size=settings.GENERATION_BATCH_CHUNK_SIZE,
            default_expression_language=settings.GENERATION_DEFAULT_EXPRESSION_LANGUAGE,
            fonts_dir=Path(settings.FONTS_DIR) if settings.FONTS_DIR else None,
        )


# Global configuration instance
_config_instance: Optional[GenerationConfig] = None


def get_generation_config() -> GenerationConfig:
    """
    Get global generation config instance.

    Returns:
        GenerationConfig instance
    """
    global _config_instance
    if _config_instance is None:
        from shared.utils.config import settings
        _config_instance = GenerationConfig.from_settings(settings)
    return _config_instance


def set_generation_config(config: GenerationConfig) -> None:
    """
    Set global generation config instance.

    Args:
        config: GenerationConfig instance
    """
    global _config_instance
    _config_instance = config
