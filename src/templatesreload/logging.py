"""Logging for templates-reload.

All records go through the ``templatesreload`` logger tree:

- ``setup_logging()`` attaches a file handler (config or TEMPLATES_RELOAD_LOG)
  or, on an interactive terminal, a stderr handler
- verbosity 0-4 maps to error, warning, info, verbose, trace
- ``get_logger(name, quiet)`` hands out per-installation adapters so one
  quiet installation never mutes another
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from templatesreload.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("templatesreload")

LOG_FILE_ENV = "TEMPLATES_RELOAD_LOG"

# Indexed by verbosity; anything above the last entry means trace
VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_initialized = False


class _ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS level: message`` with the level name in lowercase.

    Works on a copy of the record so other handlers keep the original name.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:  # noqa: N802 - logging API name
        lowered = logging.makeLogRecord({**record.__dict__, "levelname": record.levelname.lower()})
        return super().formatMessage(lowered)


class QuietLogger(logging.LoggerAdapter):
    """Adapter that reports every level as disabled while ``quiet`` is set."""

    def __init__(self, base: logging.Logger, quiet: bool = False) -> None:
        super().__init__(base, {})
        self.quiet = quiet

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802 - logging API name
        return not self.quiet and self.logger.isEnabledFor(level)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for ``config``; ``verbose`` beats ``level``, INFO otherwise."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = max(0, config.verbose)
        return VERBOSITY_LEVELS[min(index, len(VERBOSITY_LEVELS) - 1)]
    if config.level:
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def _build_handlers(config: LoggingConfig | None) -> list[logging.Handler]:
    path = (config.file if config else None) or os.environ.get(LOG_FILE_ENV)
    interactive = sys.stderr.isatty()

    if path:
        try:
            return [logging.FileHandler(os.path.expanduser(path), mode="a", encoding="utf-8")]
        except OSError as e:
            if not interactive:
                return []
            print(f"[templatesreload] Cannot open log file {path}: {e}", file=sys.stderr)

    # Pipes from IDEs and process managers stay clean
    return [logging.StreamHandler(sys.stderr)] if interactive else []


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the package logger. Only the first call has any effect.

    Args:
        config: Level, verbosity (0-4) and log file; None means INFO to the
            terminal (or TEMPLATES_RELOAD_LOG when set).
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    formatter = _ConsoleFormatter()
    for handler in _build_handlers(config):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def get_logger(name: str | None = None, quiet: bool = False) -> QuietLogger:
    """Adapter over ``templatesreload`` or its child ``name`` ("watching", "channel")."""
    return QuietLogger(logger.getChild(name) if name else logger, quiet=quiet)
