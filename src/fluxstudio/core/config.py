"""Configuration management for Flux Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the FLUXSTUDIO_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (FLUXSTUDIO_* prefix)
2. .env file in the project root
3. Default values defined in FluxStudioConfig

Example .env file:
    FLUXSTUDIO_FAL_KEY=xxxxxxxx:yyyyyyyy
    FLUXSTUDIO_SUPABASE_URL=https://project.supabase.co
    FLUXSTUDIO_SUPABASE_KEY=anon-key
    FLUXSTUDIO_DATA_DIR=data

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from fluxstudio.core.config import config

    print(config.history_table)
    print(config.remote_history_enabled)

Remote History
--------------
The Supabase connection is optional.  When either ``supabase_url`` or
``supabase_key`` is missing, the history reconciler runs without a remote
store and every generation is kept in the local cache only.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FluxStudioConfig(BaseSettings):
    """Main configuration for Flux Studio.

    Attributes
    ----------
    Provider Settings:
        fal_key : str | None
            Default fal.ai credential.  A generate request may carry its own key.

    Remote History Settings:
        supabase_url : str | None
            Supabase project URL
        supabase_key : str | None
            Supabase API key (anon or service role)
        history_table : str
            Table holding generation records
        history_fetch_limit : int
            Default number of records returned by a history fetch (1-200)

    Local Storage:
        data_dir : Path
            Directory holding the local key-value storage file
        local_storage_file : str
            File name of the local key-value storage inside data_dir

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root logging level for the API process

    Notes
    -----
    - data_dir is created automatically if it doesn't exist
    - Configuration is immutable after initialization
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLUXSTUDIO_",
        case_sensitive=False,
    )

    # Provider
    fal_key: str | None = Field(
        default=None,
        description="Default fal.ai API key (requests may override it)",
    )

    # Remote history (Supabase)
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_key: str | None = Field(default=None, description="Supabase API key")
    history_table: str = Field(
        default="generations",
        description="Table holding generation records",
    )
    history_fetch_limit: int = Field(default=50, ge=1, le=200)

    # Local storage
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the local key-value storage file",
    )
    local_storage_file: str = Field(
        default="local_storage.json",
        description="Local key-value storage file name (inside data_dir)",
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(default=7860, description="Server port", ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def local_storage_path(self) -> Path:
        """Full path of the local key-value storage file."""
        return self.data_dir / self.local_storage_file

    @property
    def remote_history_enabled(self) -> bool:
        """Whether both Supabase connection settings are present."""
        return bool(self.supabase_url and self.supabase_key)


# Global configuration instance, loaded from FLUXSTUDIO_* variables and .env.
config = FluxStudioConfig()
