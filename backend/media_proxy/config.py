"""
Audiomosh Proxy — Application Configuration
============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   API keys and tuning knobs come from the environment; typed fields
       catch a malformed PORT or LOG_LEVEL at startup, not mid-request.
How:   Pydantic Settings reads environment variables (or a .env file),
       validates types/ranges, and exposes a singleton `settings` object.
Who:   Passed into `create_app()`; everything downstream reads it from
       `app.state.settings`.

Missing API keys are NOT fatal: the server still starts so /health can
report which keys are absent, and the affected routes answer 500.
"""

from typing import List
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Proxy settings loaded from environment variables.

    Every value has a development default; only the two API keys need to be
    supplied for the proxy to be useful.
    """

    # ── Upstream credentials ──────────────────────────────────────────────
    # Freesound expects "Authorization: Token <key>", Pexels the raw key.
    freesound_api_key: str = Field(default="", description="Freesound API token")
    pexels_api_key: str = Field(default="", description="Pexels API key")

    # ── Upstream endpoints ────────────────────────────────────────────────
    freesound_base_url: str = Field(default="https://freesound.org")
    pexels_base_url: str = Field(default="https://api.pexels.com")
    user_agent: str = Field(default="audiomosh-proxy/1.0")

    # Seconds. Metadata calls are small JSON documents; downloads are whole
    # audio/video files and get a longer budget.
    metadata_timeout: float = Field(default=30.0, gt=0, le=600)
    download_timeout: float = Field(default=120.0, gt=0, le=3600)

    # What: Hosts that /api/pexels/download may fetch from.
    # Format: Comma-separated host names; subdomains of a listed host match.
    #         A single "*" disables the check (any http/https URL).
    pexels_download_hosts: str = Field(
        default="videos.pexels.com,player.vimeo.com,images.pexels.com"
    )

    @property
    def pexels_download_hosts_list(self) -> List[str]:
        """Splits the comma-separated allow-list into lowercase host names."""
        return [
            host.strip().lower()
            for host in self.pexels_download_hosts.split(",")
            if host.strip()
        ]

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)

    # What: only an explicit "development" adds stack traces to 500 responses.
    environment: str = Field(default="production")

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("freesound_base_url", "pexels_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Upstream roots must be absolute http(s) URLs; trailing slash dropped."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Invalid upstream base URL '{v}'")
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    # ── Response cache ────────────────────────────────────────────────────
    cache_ttl: float = Field(default=300.0, gt=0)  # seconds
    # 0 = unbounded
    cache_max_entries: int = Field(default=1000, ge=0)

    # ── Rate limiting ─────────────────────────────────────────────────────
    # What: Fixed window per client identity, applied to the proxy routes only.
    rate_limit_requests: int = Field(default=100, ge=1, le=100000)
    rate_limit_window: float = Field(default=60.0, gt=0, le=86400)  # seconds
    # Drop expired counters every N admitted requests (0 = never sweep).
    rate_limit_sweep_every: int = Field(default=1000, ge=0)

    # When True, the first X-Forwarded-For hop identifies the client. Only
    # safe when a trusted reverse proxy sets the header.
    trust_forwarded_for: bool = Field(default=False)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # FREESOUND_API_KEY and freesound_api_key both work
        "extra": "ignore",
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Reports unset API keys in one error.
        When:  Called during app startup (lifespan); the caller only logs it.
        """
        errors = []
        if not self.freesound_api_key:
            errors.append("FREESOUND_API_KEY is not set; /api/freesound routes will return 500")
        if not self.pexels_api_key:
            errors.append("PEXELS_API_KEY is not set; /api/pexels will return 500")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance: the default configuration for create_app()
settings = Settings()
