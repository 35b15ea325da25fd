"""Exception types raised by templates-reload."""

from __future__ import annotations

from pathlib import Path


class TemplatesReloadError(Exception):
    """Base class for all templates-reload errors."""


class ConfigurationError(TemplatesReloadError, ValueError):
    """Invalid setup configuration. Raised before anything is installed."""

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class WatchArmingError(TemplatesReloadError):
    """A watch target's change source could not be started.

    Only that target is disabled; the other targets keep running.
    """

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(f"Cannot watch {path}: {reason}")
        self.path = path
        self.reason = reason


class DeliveryError(TemplatesReloadError):
    """A message could not be handed to a connected client."""
