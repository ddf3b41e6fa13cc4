"""Configuration management for Past Forward.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the PASTFORWARD_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PASTFORWARD_* prefix)
2. .env file in the project root
3. Default values defined in PastForwardConfig

Example .env file:
    PASTFORWARD_GENERATOR_BACKEND=gemini
    PASTFORWARD_GEMINI_API_KEY=...
    PASTFORWARD_WORKER_COUNT=2
    PASTFORWARD_DECADES=["1950s", "1960s", "1970s"]

List-valued settings such as ``decades`` are read from the environment as
JSON arrays.

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from pastforward.core.config import config

    print(config.decades)
    print(config.worker_count)

Worker Count
------------
``worker_count`` bounds the number of generator calls in flight at once.
It is kept small on purpose: the image service applies per-key rate limits
and two concurrent requests already hide most of the per-call latency.

See Also
--------
- PastForwardConfig: Full configuration class documentation
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DECADES: list[str] = ["1950s", "1960s", "1970s", "1980s", "1990s", "2000s"]


class PastForwardConfig(BaseSettings):
    """Main configuration for Past Forward.

    This class uses Pydantic Settings to manage all application configuration.
    Values are loaded from environment variables with the PASTFORWARD_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Catalog & Scheduling:
        decades : list[str]
            Ordered catalog of decade identifiers, one generation per entry
        worker_count : int
            Number of concurrent generation workers (1-8)

    Generator Settings:
        generator_backend : Literal["gemini", "dryrun"]
            Which generator client to build ("dryrun" works offline)
        gemini_model : str
            Gemini model used for image-to-image generation
        gemini_api_key : str | None
            API key; when unset the google-genai client reads GEMINI_API_KEY
        generator_max_retries : int
            Retries for server-side (5xx) generator errors
        generator_retry_delay : float
            Initial retry delay in seconds (doubles per attempt)

    Album Settings:
        album_jpeg_quality : int
            JPEG quality of the composed album (1-95)
        album_font_path : Path | None
            TrueType font for titles and captions (Pillow default font if unset)

    Paths:
        outputs_dir : Path
            Directory the batch CLI writes downloads into

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root logging level for the entry points

    Notes
    -----
    - Configuration is immutable after initialization
    - To modify config, set environment variables and restart the application

    Examples
    --------
    Create a custom configuration:

        >>> custom_config = PastForwardConfig(
        ...     decades=["1950s", "1960s"],
        ...     generator_backend="dryrun",
        ...     worker_count=1,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PASTFORWARD_",
        case_sensitive=False,
    )

    # Catalog and scheduling
    decades: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DECADES),
        description="Ordered catalog of decade identifiers",
    )
    worker_count: int = Field(
        default=2,
        description="Number of concurrent generation workers",
        ge=1,
        le=8,
    )

    # Generator settings
    generator_backend: Literal["gemini", "dryrun"] = Field(
        default="gemini",
        description="Generator client backend (gemini or offline dryrun)",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Gemini model used for image generation",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="Gemini API key (falls back to GEMINI_API_KEY / GOOGLE_API_KEY)",
    )
    generator_max_retries: int = Field(
        default=3,
        description="Retries for server-side generator errors",
        ge=0,
        le=10,
    )
    generator_retry_delay: float = Field(
        default=1.0,
        description="Initial retry delay in seconds, doubled after each attempt",
        ge=0.0,
    )

    # Album settings
    album_jpeg_quality: int = Field(default=90, ge=1, le=95)
    album_font_path: Path | None = Field(
        default=None,
        description="TrueType font for album text (Pillow default font when unset)",
    )

    # Paths
    outputs_dir: Path = Field(
        default=Path("outputs"),
        description="Directory the batch CLI writes images into",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("decades")
    @classmethod
    def _validate_decades(cls, value: list[str]) -> list[str]:
        """Reject empty catalogs, blank identifiers, and duplicates."""
        cleaned = [decade.strip() for decade in value]
        if not cleaned:
            raise ValueError("decades must contain at least one entry")
        if any(not decade for decade in cleaned):
            raise ValueError("decades must not contain blank entries")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("decades must be unique")
        return cleaned

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return value.upper()


# Global configuration instance
# This instance is created automatically when the module is imported and serves
# as the single source of truth for all configuration values across the application.
# It loads values from environment variables (PASTFORWARD_* prefix) and .env file.
config = PastForwardConfig()
