"""Application configuration objects."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exporter import WORKSHEET_TITLE
from .remote import GRAPH_BASE_URL


class Settings(BaseSettings):
    """Pydantic settings used to configure the application."""

    model_config = SettingsConfigDict(
        env_prefix="SHELFSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="Shelfsync Inventory",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    storage_path: Path = Field(
        default=Path("inventory_data.json"),
        description="JSON file holding the local items and categories.",
    )
    log_level: str = Field(default="INFO", description="Root logger level.")
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional rotating log file in addition to stdout.",
    )
    sync_enabled: bool = Field(
        default=True,
        description="Push the inventory to the remote workbook after each change.",
    )
    graph_base_url: str = Field(default=GRAPH_BASE_URL)
    graph_access_token: Optional[str] = Field(
        default=None,
        description="Bearer token for Microsoft Graph, if already acquired.",
    )
    workbook_name: str = Field(default="inventory.xlsx")
    worksheet_name: str = Field(default=WORKSHEET_TITLE)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5000, ge=1, le=65535)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'")
        return normalized

    @field_validator("workbook_name")
    @classmethod
    def _validate_workbook_name(cls, value: str) -> str:
        if not value.lower().endswith(".xlsx"):
            raise ValueError("The remote workbook must be an .xlsx file")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings"]
