"""
Runtime configuration for the admissions dashboard.

Settings are read from environment variables prefixed with
``ADMISSIONS_`` (or a ``.env`` file in the working directory). The
connection fields only provide the defaults shown in the login dialog;
the user can change them before connecting.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: ADMISSIONS_
    """

    model_config = SettingsConfigDict(
        env_prefix="ADMISSIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Login dialog defaults
    db_type: str = Field(default="MySQL", description="SQLite, MySQL, PostgreSQL or MariaDB")
    host: str = "localhost"
    port: int = 3306
    database: str = "University_admissions"
    user: str = "root"

    # CSV import
    import_batch_size: int = Field(default=500, gt=0, description="Rows sent per executemany call")
    strict_identifiers: bool = Field(
        default=False,
        description="Reject table/column names that are not plain identifiers",
    )

    log_level: str = "INFO"

    # Demo database seeded with synthetic data on start-up
    demo: bool = False
    demo_db_path: str = "admissions_demo.db"
    demo_applicants: int = Field(default=200, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
