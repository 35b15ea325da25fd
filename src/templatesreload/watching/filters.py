"""Name filtering for directory watch targets.

Editors and package managers produce a steady stream of irrelevant
notifications (swap files, lock files, dependency installs). Everything
that fails these rules is dropped without logging.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePosixPath

DEPENDENCY_DIRS = frozenset(
    {
        "node_modules",
        "bower_components",
        "__pycache__",
        "site-packages",
        "venv",
        ".venv",
    }
)


def is_hidden(name: str) -> bool:
    """True if any path component starts with a dot."""
    return any(part.startswith(".") for part in PurePosixPath(name).parts)


def is_temporary(name: str) -> bool:
    """True for editor backups (``foo~``) and temp files (``foo.tmp.123``)."""
    base = PurePosixPath(name).name
    return base.endswith((".tmp", "~")) or ".tmp." in base


def in_dependency_dir(name: str) -> bool:
    parts = PurePosixPath(name).parts[:-1]
    return any(part in DEPENDENCY_DIRS for part in parts)


class FilterPolicy:
    """Decides whether a changed name under a directory target is relevant."""

    def __init__(self, extensions: Iterable[str] | None) -> None:
        self._extensions = tuple(sorted(extensions or ()))

    @property
    def extensions(self) -> tuple[str, ...]:
        return self._extensions

    def accepts(self, name: str) -> bool:
        """Check a target-relative, slash separated name against the rules."""
        if not name:
            return False
        if is_hidden(name) or is_temporary(name) or in_dependency_dir(name):
            return False
        return name.endswith(self._extensions)
