"""Environment-driven defaults for the Pacer engine.

``PacerSettings`` lets a deployment tune batch defaults (concurrency,
pacing, retries, error budget) and logging without code changes.
Explicit :class:`~pacer.execution.options.ProcessorOptions` passed by a
caller always win over these defaults.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not mid-batch
    - **Environment-driven:** Reads ``PACER_*`` env vars and ``.env`` files
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> import os
    >>> os.environ["PACER_CONCURRENCY"] = "8"
    >>> get_settings(_force_reload=True).concurrency
    8

Tags:
    settings, configuration, pydantic, environment, pacer
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PacerSettings(BaseSettings):
    """Process-wide defaults, read from ``PACER_*`` environment variables.

    Fields
    ──────
    concurrency       : Default worker count
    delay             : Default seconds between admissions
    timeout           : Default per-attempt timeout in seconds (0 = off)
    retry_delay       : Default seconds between attempts of one item
    max_retries       : Default retry count per item
    max_total_errors  : Default error budget (unset = unbounded)
    poll_interval     : Streaming back-off when the source is empty
    log_level         : Structlog log level
    log_format        : ``json``, ``console`` or ``auto``
    """

    model_config = SettingsConfigDict(
        env_prefix="PACER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    concurrency: int = Field(default=1, ge=1)
    delay: float = Field(default=0.0, ge=0)
    timeout: float = Field(default=0.0, ge=0)
    retry_delay: float = Field(default=0.0, ge=0)
    max_retries: int = Field(default=0, ge=0)
    max_total_errors: int | None = Field(default=None, ge=1)
    poll_interval: float = Field(default=0.05, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", pattern="^(json|console|auto)$")


_settings_cache: dict[str, PacerSettings] = {}


def get_settings(*, _force_reload: bool = False) -> PacerSettings:
    """Load, validate, and cache a :class:`PacerSettings` instance.

    Parameters
    ----------
    _force_reload:
        Bypass cache and re-read the environment.
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = PacerSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests and reconfiguration)."""
    _settings_cache.clear()


__all__ = ["PacerSettings", "get_settings", "clear_settings_cache"]
