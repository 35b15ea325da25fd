"""Configuration schema dataclasses for templates-reload.

All fields have defaults so partial configs (project file, environment,
explicit setup options) can be merged together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TRANSPORTS = ("push", "poll")
COALESCE_STRATEGIES = ("debounce", "content")

DEFAULT_ENDPOINT = "/templates-reload"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class ReloadOptions:
    """Options accepted by ``setup()``.

    Example templates-reload.yaml:
        options:
          quiet: false
          transport: push
          coalesce: debounce
          debounce_ms: 50
          poll_interval_ms: 300
    """

    quiet: bool = False  # Suppress all log output of this installation
    poll_interval_ms: int | None = None  # Poll the filesystem instead of native events
    transport: str = "push"  # "push" (SSE stream) or "poll" (held request)
    coalesce: str = "debounce"  # "debounce" or "content"
    debounce_ms: int = 50
    reconnect_delay_ms: int = 1000  # Browser wait between reconnect attempts
    max_reconnect_attempts: int = 10  # Browser gives up after this many failures
    disconnect_check_interval: float = 1.0  # Seconds between disconnect probes
    endpoint: str = DEFAULT_ENDPOINT


@dataclass
class ReloadConfig:
    """Root configuration object."""

    watch: list[dict[str, Any]] = field(default_factory=list)
    options: ReloadOptions = field(default_factory=ReloadOptions)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
