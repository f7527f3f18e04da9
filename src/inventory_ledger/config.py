"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_location_aliases() -> Dict[str, List[str]]:
    return {
        "origin": ["bodega usa", "bodega principal", "usa", "origin warehouse", "main warehouse"],
        "destination": ["bodega ecuador", "ecuador", "destination warehouse"],
    }


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", case_sensitive=False)

    app_name: str = "Inventory Ledger API"
    api_v1_prefix: str = "/api/v1"
    database_url: str = Field(
        default="sqlite:///./inventory_ledger.db",
        description="SQLAlchemy compatible database URL",
    )
    echo_sql: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    default_page_size: int = 50
    max_page_size: int = 200
    write_retries: int = Field(default=5, ge=1, description="Compare-and-swap attempts per stock write")
    origin_warehouse: str = "origin"
    destination_warehouse: str = "destination"
    location_aliases: Dict[str, List[str]] = Field(default_factory=_default_location_aliases)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
