"""Application configuration helpers."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Runtime configuration loaded from ``INVENTORY_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="INVENTORY_", env_file=".env", case_sensitive=False)

    app_name: str = "Inventory Ledger API"
    api_prefix: str = ""
    database_url: str = Field(
        default="sqlite:///./inventory.db",
        description="SQLAlchemy compatible database URL",
    )
    echo_sql: bool = False
    host: str = "127.0.0.1"
    port: int = 5000
    reload: bool = False
    log_level: str = "info"
    cors_origins: List[str] = Field(default_factory=list)
    max_page_size: int = 200
    enable_catalog_seed: bool = True
    catalog_url: str = "https://dummyjson.com/products"
    catalog_timeout: float = 10.0
    auto_migrate: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the root logging handler used by the CLI entry points."""

    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
