"""Filesystem change sources for watch targets.

Each target gets one ``watchfiles.awatch`` subscription running in its own
task. Raw notifications are normalized into :class:`ChangeEvent` objects,
filtered, and handed to the coalescer through an ``asyncio.Queue``.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchfiles import Change, awatch

from templatesreload.errors import WatchArmingError
from templatesreload.logging import get_logger
from templatesreload.watching.filters import FilterPolicy
from templatesreload.watching.targets import WatchTarget

if TYPE_CHECKING:
    from templatesreload.watching.coalescer import ChangeCoalescer

# Grouping window inside watchfiles; the coalescer does the real debouncing.
RAW_DEBOUNCE_MS = 50
RAW_STEP_MS = 10


class ChangeKind(Enum):
    """Normalized kind of a filesystem notification."""

    CHANGED = "changed"
    REMOVED = "removed"
    UNKNOWN = "unknown"


_KIND_MAP = {
    Change.added: ChangeKind.CHANGED,
    Change.modified: ChangeKind.CHANGED,
    Change.deleted: ChangeKind.REMOVED,
}


@dataclass(frozen=True)
class ChangeEvent:
    """A relevant change under one watch target."""

    target_path: Path
    changed_name: str  # Relative to target_path for directories, file name otherwise
    kind: ChangeKind
    timestamp: float = field(default_factory=time.time)
    is_directory_target: bool = False

    @property
    def path(self) -> Path:
        """Filesystem path of the changed file."""
        if self.is_directory_target:
            return self.target_path / self.changed_name
        return self.target_path


RawChanges = set[tuple[Any, str]]
SourceFactory = Callable[[WatchTarget, asyncio.Event], AsyncIterator[RawChanges]]


def make_source_factory(poll_interval_ms: int | None = None) -> SourceFactory:
    """Build the default change source factory backed by watchfiles.

    Args:
        poll_interval_ms: When set, poll the filesystem at this interval
            instead of relying on native notifications.
    """

    def factory(target: WatchTarget, stop_event: asyncio.Event) -> AsyncIterator[RawChanges]:
        kwargs: dict[str, Any] = {}
        if poll_interval_ms is not None:
            kwargs["force_polling"] = True
            kwargs["poll_delay_ms"] = poll_interval_ms
        return awatch(
            target.path,
            watch_filter=None,
            recursive=target.is_directory,
            debounce=RAW_DEBOUNCE_MS,
            step=RAW_STEP_MS,
            stop_event=stop_event,
            **kwargs,
        )

    return factory


def _relative_name(raw_path: str, target: Path) -> str | None:
    """Express ``raw_path`` relative to ``target`` as a POSIX string."""
    changed = Path(raw_path)
    for root in (target, target.absolute(), target.resolve()):
        with contextlib.suppress(ValueError):
            return changed.relative_to(root).as_posix()
    with contextlib.suppress(OSError, ValueError):
        return changed.resolve().relative_to(target.resolve()).as_posix()
    return None


class PathWatcher:
    """Watches a single target and forwards normalized events.

    An arming failure disables this watcher only; ``error`` keeps the reason.
    """

    def __init__(
        self,
        target: WatchTarget,
        queue: asyncio.Queue[ChangeEvent],
        source_factory: SourceFactory,
        quiet: bool = False,
    ) -> None:
        self.target = target
        self._queue = queue
        self._source_factory = source_factory
        self._policy = FilterPolicy(target.extensions) if target.is_directory else None
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._log = get_logger("watching", quiet=quiet)
        self.error: WatchArmingError | None = None

    @property
    def disabled(self) -> bool:
        return self.error is not None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def translate(self, change: Any, raw_path: str) -> ChangeEvent | None:
        """Normalize one raw notification, or return None to drop it."""
        if not raw_path:
            return None

        kind = _KIND_MAP.get(change, ChangeKind.UNKNOWN)

        if self._policy is None:
            return ChangeEvent(
                target_path=self.target.path,
                changed_name=self.target.path.name,
                kind=kind,
            )

        name = _relative_name(raw_path, self.target.path)
        if not name or name == ".":
            return None
        if not self._policy.accepts(name):
            return None

        return ChangeEvent(
            target_path=self.target.path,
            changed_name=name,
            kind=kind,
            is_directory_target=True,
        )

    async def run(self) -> None:
        """Consume the change source until stopped or it fails."""
        try:
            async for changes in self._source_factory(self.target, self._stop_event):
                for change, raw_path in changes:
                    event = self.translate(change, raw_path)
                    if event is not None:
                        self._queue.put_nowait(event)
        except OSError as e:
            self.error = WatchArmingError(self.target.path, e.strerror or str(e) or type(e).__name__)
            self._log.error("Error watching path %s: %s", self.target.path, self.error.reason)
        except Exception as e:
            self.error = WatchArmingError(self.target.path, str(e) or type(e).__name__)
            self._log.exception("Watcher for %s failed", self.target.path)

    def start(self) -> asyncio.Task[None]:
        """Arm the watcher in a background task."""
        if self._task is None:
            self._task = asyncio.create_task(
                self.run(), name=f"templatesreload-watch:{self.target.path}"
            )
            self._log.debug("Watching %s", self.target.describe())
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None


class WatchSupervisor:
    """Owns the watchers of one installation and pumps their events.

    Example:
        supervisor = WatchSupervisor(targets, coalescer)
        await supervisor.start()
        ...
        await supervisor.stop()
    """

    def __init__(
        self,
        targets: list[WatchTarget],
        coalescer: ChangeCoalescer,
        source_factory: SourceFactory | None = None,
        quiet: bool = False,
    ) -> None:
        self._targets = targets
        self._coalescer = coalescer
        self._source_factory = source_factory or make_source_factory()
        self._quiet = quiet
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._watchers: list[PathWatcher] = []
        self._pump_task: asyncio.Task[None] | None = None
        self._log = get_logger("watching", quiet=quiet)

    @property
    def watchers(self) -> list[PathWatcher]:
        return list(self._watchers)

    @property
    def disabled_targets(self) -> list[WatchTarget]:
        return [w.target for w in self._watchers if w.disabled]

    def is_running(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    async def start(self) -> None:
        """Arm one watcher per target and start the pump task."""
        if self.is_running():
            self._log.warning("Watch supervisor already running")
            return

        self._watchers = [
            PathWatcher(target, self._queue, self._source_factory, quiet=self._quiet)
            for target in self._targets
        ]
        for watcher in self._watchers:
            watcher.start()
        self._pump_task = asyncio.create_task(self._pump(), name="templatesreload-pump")

        self._log.info(
            "Watching %d target(s): %s",
            len(self._targets),
            ", ".join(t.describe() for t in self._targets),
        )

    async def _pump(self) -> None:
        while True:
            event = await self._queue.get()
            if event.kind is ChangeKind.REMOVED:
                self._log.info("File deleted: %s", event.changed_name)
            else:
                self._log.info("File changed: %s", event.changed_name)
            self._coalescer.push(event)

    async def stop(self) -> None:
        """Stop all watchers and the pump."""
        for watcher in self._watchers:
            await watcher.stop()

        if self._pump_task is not None:
            self._pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None

        self._log.debug("Watch supervisor stopped")
