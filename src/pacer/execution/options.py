"""Processor options -- validated batch configuration.

All durations are seconds.  Invalid input raises
:class:`~pacer.core.errors.ConfigurationError` synchronously, at
construction, before any work starts.

Example::

    options = ProcessorOptions.build({"concurrency": 4, "delay": 0.25})
    options = ProcessorOptions.build(options, max_retries=2)       # override
    options = ProcessorOptions.from_settings(get_settings(), timeout=5)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pacer.core.errors import ConfigurationError

if TYPE_CHECKING:
    from pacer.core.settings import PacerSettings

RetryPolicy = Callable[[Any, int], int]


class ProcessorOptions(BaseModel):
    """Scheduling, retry and error-budget configuration for one batch.

    Attributes:
        concurrency: Number of simultaneous tasks (>= 1)
        delay: Minimum seconds between consecutive admissions (global)
        timeout: Per-attempt timeout in seconds; 0 disables
        retry_delay: Seconds to wait before each retry attempt
        max_retries: Fixed retry count, or ``policy(item, key) -> int``
        max_total_errors: Terminal failures that abort the batch; None = unbounded
        poll_interval: Streaming back-off when the source is temporarily empty
        record_stopped: Record skipped items as STOPPED failures (else omit them)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    concurrency: int = Field(default=1, ge=1)
    delay: float = Field(default=0.0, ge=0)
    timeout: float = Field(default=0.0, ge=0)
    retry_delay: float = Field(default=0.0, ge=0)
    max_retries: int | RetryPolicy = 0
    max_total_errors: int | None = Field(default=None, ge=1)
    poll_interval: float = Field(default=0.05, gt=0)
    record_stopped: bool = True

    @field_validator("max_retries")
    @classmethod
    def _check_max_retries(cls, value: int | RetryPolicy) -> int | RetryPolicy:
        if isinstance(value, bool):
            raise ValueError("max_retries must be an int or a callable")
        if isinstance(value, int) and value < 0:
            raise ValueError("max_retries must be >= 0")
        return value

    @classmethod
    def build(
        cls,
        options: ProcessorOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> ProcessorOptions:
        """Build validated options from an instance, a mapping, or keywords.

        Raises:
            ConfigurationError: On unknown keys or out-of-range values.
        """
        if isinstance(options, ProcessorOptions):
            data = options.model_dump()
        elif options is None:
            data = {}
        elif isinstance(options, Mapping):
            data = dict(options)
        else:
            raise ConfigurationError(
                f"options must be a mapping or ProcessorOptions, got {type(options).__name__}"
            )
        data.update(overrides)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid processor options: {exc}", cause=exc) from exc

    @classmethod
    def from_settings(cls, settings: PacerSettings, **overrides: Any) -> ProcessorOptions:
        """Start from environment defaults, then apply ``overrides``."""
        data = {
            "concurrency": settings.concurrency,
            "delay": settings.delay,
            "timeout": settings.timeout,
            "retry_delay": settings.retry_delay,
            "max_retries": settings.max_retries,
            "max_total_errors": settings.max_total_errors,
            "poll_interval": settings.poll_interval,
        }
        return cls.build(data, **overrides)

    def resolve_max_retries(self, item: Any, key: int) -> int:
        """Evaluate the retry policy for one item.

        Raises:
            ConfigurationError: If a policy returns something other than an int >= 0.
        """
        if not callable(self.max_retries):
            return self.max_retries
        value = self.max_retries(item, key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigurationError(
                f"max_retries policy returned {value!r} for key {key}; expected int >= 0"
            )
        return value
