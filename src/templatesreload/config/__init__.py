"""Configuration management for templates-reload.

Settings are layered, later layers winning:
- Project file (templates-reload.yaml or .templates-reload.yaml)
- Environment variables (TEMPLATES_RELOAD_QUIET, TEMPLATES_RELOAD_TRANSPORT,
  TEMPLATES_RELOAD_POLL_INTERVAL_MS, TEMPLATES_RELOAD_LOG)
- Options passed to setup()

Example usage:
    from templatesreload.config import load_config

    config = load_config(project_root=".", options={"quiet": True})
    print(config.options.transport)
"""

from templatesreload.config.environment import (
    current_environment,
    is_production,
)
from templatesreload.config.loader import (
    build_options,
    find_config_file,
    load_config,
    normalize_options,
)
from templatesreload.config.schema import (
    DEFAULT_ENDPOINT,
    LoggingConfig,
    ReloadConfig,
    ReloadOptions,
)

__all__ = [
    # Main API
    "load_config",
    "find_config_file",
    "build_options",
    "normalize_options",
    # Activation gate
    "is_production",
    "current_environment",
    # Schema types
    "ReloadConfig",
    "ReloadOptions",
    "LoggingConfig",
    "DEFAULT_ENDPOINT",
]
