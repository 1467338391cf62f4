# src/fanin/core/config.py
"""Configuration schema and loading for fanin.

Settings are frozen Pydantic models. load_settings() reads a YAML file
through Dynaconf so that environment variables can override any value:

    FANIN_LOGGING__LEVEL=DEBUG
    FANIN_STORE__DELIVERY_WORKERS=4
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class FetcherSettings(BaseModel):
    """Behaviour of AggregatingFetcher collection reads."""

    model_config = {"frozen": True, "extra": "forbid"}

    preserve_source_order: bool = Field(
        default=True,
        description="Deliver collections in store child order (True) or parse completion order (False)",
    )


class MemoryStoreSettings(BaseModel):
    """In-memory store adapter configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    delivery_workers: int = Field(
        default=1,
        ge=0,
        description="Background threads delivering completions (0 = deliver inline on the calling thread)",
    )
    key_entropy_chars: int = Field(default=12, ge=1, description="Random characters appended to push keys")


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")


class FaninSettings(BaseModel):
    """Top-level settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    fetcher: FetcherSettings = Field(default_factory=FetcherSettings)
    store: MemoryStoreSettings = Field(default_factory=MemoryStoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: Path) -> FaninSettings:
    """Load settings from YAML file with environment variable overrides.

    Precedence:
    1. Environment variables (FANIN_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated FaninSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="FANIN",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys at every level
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return FaninSettings(**raw_config)


def _lower_keys(value: object) -> object:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value
