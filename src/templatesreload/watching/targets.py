"""Watch target definitions and up-front validation."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from templatesreload.errors import ConfigurationError
from templatesreload.logging import get_logger

log = get_logger("watching")


@dataclass(frozen=True)
class WatchTarget:
    """A file or directory to monitor.

    ``extensions`` is required for directories and ignored for files.
    ``is_directory`` is filled in by :func:`validate_targets`.
    """

    path: Path
    extensions: frozenset[str] | None = None
    is_directory: bool = False

    def describe(self) -> str:
        if self.is_directory and self.extensions:
            return f"{self.path} ({', '.join(sorted(self.extensions))})"
        return str(self.path)


TargetSpec = Union[WatchTarget, Mapping[str, Any], str, os.PathLike]


def normalize_extension(ext: str) -> str:
    """Return ``ext`` with a leading dot (``"html"`` -> ``".html"``)."""
    ext = ext.strip()
    if not ext:
        raise ConfigurationError("Empty extension in watch target")
    return ext if ext.startswith(".") else f".{ext}"


def _coerce(spec: TargetSpec) -> tuple[Path, frozenset[str] | None]:
    if isinstance(spec, WatchTarget):
        return spec.path, spec.extensions
    if isinstance(spec, Mapping):
        if "path" not in spec:
            raise ConfigurationError(f"Watch target is missing 'path': {dict(spec)!r}")
        raw_exts = spec.get("extensions")
        path = Path(spec["path"])
    else:
        raw_exts = None
        path = Path(spec)

    if raw_exts is None:
        return path, None
    if isinstance(raw_exts, str):
        raw_exts = [raw_exts]
    return path, frozenset(normalize_extension(e) for e in raw_exts)


def validate_targets(specs: Iterable[TargetSpec]) -> list[WatchTarget]:
    """Validate configured watch targets before anything is armed.

    Directories must carry a non-empty extension filter. Entries resolving to
    the same path are merged with their extension sets unioned.

    Args:
        specs: WatchTarget instances, ``{"path": ..., "extensions": [...]}``
            mappings, or bare paths.

    Returns:
        Validated targets in configuration order.

    Raises:
        ConfigurationError: A directory target has no extensions.
    """
    merged: dict[Path, WatchTarget] = {}

    for spec in specs:
        path, extensions = _coerce(spec)
        is_directory = path.is_dir()

        if is_directory and not extensions:
            raise ConfigurationError(
                f"Extensions must be provided for directory: {path}", path=path
            )

        key = path.resolve()
        existing = merged.get(key)
        if existing is not None:
            log.debug("Merging duplicate watch target %s", path)
            if existing.is_directory:
                extensions = (existing.extensions or frozenset()) | (extensions or frozenset())
            path = existing.path

        merged[key] = WatchTarget(
            path=path,
            extensions=extensions if is_directory else None,
            is_directory=is_directory,
        )

    return list(merged.values())
