"""Landlord configuration via environment / .env file."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Scoping ---
    LANDLORD_ENABLED: bool = True
    LANDLORD_DEFAULT_TENANT_COLUMNS: Annotated[list[str], NoDecode] = ["tenant_id"]

    # --- Logging ---
    LANDLORD_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    @field_validator("LANDLORD_DEFAULT_TENANT_COLUMNS", mode="before")
    @classmethod
    def _split_columns(cls, v: object) -> object:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("LANDLORD_DEFAULT_TENANT_COLUMNS")
    @classmethod
    def _require_columns(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("LANDLORD_DEFAULT_TENANT_COLUMNS must name at least one column")
        return v

    @field_validator("LANDLORD_LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


settings = Settings()
