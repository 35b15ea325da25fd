"""Configuration loading.

Handles:
- YAML project file parsing
- Environment variable overrides
- Explicit setup() options (highest priority)
- Conversion from dict to typed ReloadConfig dataclass with validation
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from templatesreload.config.merge import merge_configs
from templatesreload.config.schema import (
    COALESCE_STRATEGIES,
    TRANSPORTS,
    LoggingConfig,
    ReloadConfig,
    ReloadOptions,
)
from templatesreload.errors import ConfigurationError

_log = logging.getLogger("templatesreload.config")

CONFIG_FILENAMES = ("templates-reload.yaml", ".templates-reload.yaml")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

_OPTION_NAMES = {f.name for f in fields(ReloadOptions)}
_INT_OPTIONS = {"poll_interval_ms", "debounce_ms", "reconnect_delay_ms", "max_reconnect_attempts"}


def find_config_file(project_root: str | Path | None = None) -> Path | None:
    """Return the first config file present in ``project_root`` (default: cwd)."""
    root = Path(project_root) if project_root is not None else Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def env_overrides() -> dict[str, Any]:
    """Build a config dict from TEMPLATES_RELOAD_* environment variables."""
    options: dict[str, Any] = {}

    quiet = os.environ.get("TEMPLATES_RELOAD_QUIET")
    if quiet is not None:
        options["quiet"] = _parse_bool("TEMPLATES_RELOAD_QUIET", quiet)

    transport = os.environ.get("TEMPLATES_RELOAD_TRANSPORT")
    if transport:
        options["transport"] = transport.strip().lower()

    interval = os.environ.get("TEMPLATES_RELOAD_POLL_INTERVAL_MS")
    if interval:
        options["poll_interval_ms"] = interval.strip()

    overrides: dict[str, Any] = {}
    if options:
        overrides["options"] = options

    log_path = os.environ.get("TEMPLATES_RELOAD_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    return overrides


def _snake_case(key: str) -> str:
    """Accept camelCase option names (``pollIntervalMs``) as well."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def normalize_options(raw: Mapping[str, Any] | ReloadOptions | None) -> dict[str, Any]:
    """Turn user supplied options into a snake_case dict.

    Raises:
        ConfigurationError: For option names that do not exist.
    """
    if raw is None:
        return {}
    if isinstance(raw, ReloadOptions):
        return {f.name: getattr(raw, f.name) for f in fields(ReloadOptions)}

    result: dict[str, Any] = {}
    for key, value in raw.items():
        name = _snake_case(str(key))
        if name not in _OPTION_NAMES:
            raise ConfigurationError(f"Unknown option: {key}")
        result[name] = value
    return result


def _coerce_int(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {number}")
    return number


def build_options(data: Mapping[str, Any]) -> ReloadOptions:
    """Validate a normalized options dict and build ReloadOptions."""
    values = normalize_options(data)

    for name in values.keys() & _INT_OPTIONS:
        if name == "poll_interval_ms" and values[name] is None:
            continue
        minimum = 0 if name == "debounce_ms" else 1
        values[name] = _coerce_int(name, values[name], minimum)

    transport = values.get("transport", "push")
    if transport not in TRANSPORTS:
        raise ConfigurationError(
            f"transport must be one of {', '.join(TRANSPORTS)}, got {transport!r}"
        )

    coalesce = values.get("coalesce", "debounce")
    if coalesce not in COALESCE_STRATEGIES:
        raise ConfigurationError(
            f"coalesce must be one of {', '.join(COALESCE_STRATEGIES)}, got {coalesce!r}"
        )

    endpoint = values.get("endpoint", ReloadOptions.endpoint)
    if not isinstance(endpoint, str) or not endpoint.startswith("/"):
        raise ConfigurationError(f"endpoint must be an absolute URL path, got {endpoint!r}")

    if "quiet" in values:
        quiet = values["quiet"]
        values["quiet"] = _parse_bool("quiet", quiet) if isinstance(quiet, str) else bool(quiet)

    if "disconnect_check_interval" in values:
        try:
            interval = float(values["disconnect_check_interval"])
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"disconnect_check_interval must be a number, got {values['disconnect_check_interval']!r}"
            ) from None
        if interval <= 0:
            raise ConfigurationError("disconnect_check_interval must be positive")
        values["disconnect_check_interval"] = interval

    return ReloadOptions(**values)


def dict_to_config(data: dict[str, Any]) -> ReloadConfig:
    """Convert a merged dict to a typed ReloadConfig.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed ReloadConfig object.
    """
    watch_data = data.get("watch", [])
    if not isinstance(watch_data, list):
        raise ConfigurationError("watch must be a list of targets")
    watch = [w if isinstance(w, dict) else {"path": w} for w in watch_data]

    options = build_options(data.get("options", {}) or {})

    log_data = data.get("logging", {}) or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    return ReloadConfig(watch=watch, options=options, logging=logging_config)


def load_config(
    project_root: str | Path | None = None,
    options: Mapping[str, Any] | ReloadOptions | None = None,
) -> ReloadConfig:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Explicit ``options`` passed to setup()
    2. Environment variables (TEMPLATES_RELOAD_*)
    3. Project config file (templates-reload.yaml in project_root)

    Args:
        project_root: Directory holding the project config file (default: cwd).
        options: Explicit setup options.

    Returns:
        Merged ReloadConfig.

    Raises:
        ConfigurationError: If any layer carries an invalid value.
    """
    layers: list[dict[str, Any]] = []

    path = find_config_file(project_root)
    if path is not None:
        file_data = load_yaml_file(path)
        if file_data:
            _log.debug("Loaded config from %s", path)
            if "options" in file_data:
                file_data = {**file_data, "options": normalize_options(file_data["options"] or {})}
            layers.append(file_data)

    layers.append(env_overrides())

    explicit = normalize_options(options)
    if explicit:
        layers.append({"options": explicit})

    return dict_to_config(merge_configs(*layers))
