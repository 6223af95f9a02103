"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (only used when grants are stored durably)
    database_url: str = "sqlite:///./assess360_rbac.db"

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    project_name: str = "Assess360 Permission Engine"
    version: str = "1.0.0"

    # Permission engine
    rbac_grant_store: Literal["memory", "database"] = "memory"
    rbac_business_hours_start: int = 9
    rbac_business_hours_end: int = 17
    rbac_business_timezone: Optional[str] = None  # IANA name; host local time when unset
    rbac_fail_open_unknown_conditions: bool = True
    rbac_audit_events: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
