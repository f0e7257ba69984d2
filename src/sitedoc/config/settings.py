"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReportingConfig(BaseModel):
    """Configuration for report generation and delivery.

    Set from the environment with the ``REPORTING__`` prefix, for example
    ``REPORTING__WORKER_COUNT=4``.
    """

    # Artifact storage
    storage_backend: Literal["memory", "filesystem"] = "memory"
    """Where rendered artifacts are kept."""

    storage_dir: Path = Path("./var/reports")
    """Root directory for the filesystem backend."""

    # Job execution
    runner: Literal["background", "inline"] = "background"
    """Background worker pool, or run each job as it is submitted."""

    worker_count: int = Field(default=2, ge=1, le=32)
    """Number of concurrent report workers."""

    job_timeout_seconds: float = Field(default=60.0, gt=0)
    """Upper bound on a single job before it is failed."""

    # Content
    preview_rows: int = Field(default=5, ge=0, le=100)
    """Records listed in the PDF preview block."""

    error_message_max_length: int = Field(default=500, ge=50)
    """Longest error text persisted on a failed report."""

    # Catalog
    index_lookback: int = Field(default=50, ge=1)
    """Recent rows scanned when matching a natural key."""

    expiry_days: int = Field(default=30, ge=1)
    """Days until a generated report expires."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    ENVIRONMENT: Literal["development", "test", "production"] = "development"
    DEBUG: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # API
    API_SECRET_KEY: SecretStr | None = None
    CORS_ORIGINS: list[str] = Field(default_factory=list)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./sitedoc.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Observability
    METRICS_ENABLED: bool = True

    # Reporting
    reporting: ReportingConfig = ReportingConfig()

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
