"""Collapse bursts of change events into single reload signals.

A single save in most editors produces several raw notifications (write,
truncate, rename, attribute change). Two strategies are available:

- ``DebounceCoalescer``: emit once the stream has been quiet for the
  debounce window.
- ``ContentCoalescer``: same window, then only emit if the content of at
  least one touched file really differs from what was seen last time.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from templatesreload.logging import get_logger
from templatesreload.watching.filters import FilterPolicy
from templatesreload.watching.targets import WatchTarget
from templatesreload.watching.watcher import ChangeEvent

DEFAULT_DEBOUNCE = 0.05  # seconds


@dataclass(frozen=True)
class CoalescedSignal:
    """One logical "reload is due" token.

    ``label`` is only used for log output; browsers never see it.
    """

    label: str | None = None
    event_count: int = 1
    timestamp: float = field(default_factory=time.time)


SignalCallback = Callable[[CoalescedSignal], None]


class ChangeCoalescer:
    """Base coalescer with a resettable debounce timer.

    ``push`` is O(1): it records the event and re-arms a ``call_later``
    timer. The signal is emitted from the timer callback on the event loop.
    """

    def __init__(
        self,
        on_signal: SignalCallback,
        debounce: float = DEFAULT_DEBOUNCE,
        quiet: bool = False,
    ) -> None:
        self._on_signal = on_signal
        self._debounce = max(0.0, debounce)
        self._pending: dict[Path, ChangeEvent] = {}
        self._pending_count = 0
        self._timer: asyncio.TimerHandle | None = None
        self._log = get_logger("coalescer", quiet=quiet)

    @property
    def debounce(self) -> float:
        return self._debounce

    @property
    def pending_count(self) -> int:
        """Number of events absorbed since the last emission."""
        return self._pending_count

    def push(self, event: ChangeEvent) -> None:
        """Record an event and (re)start the debounce window."""
        # Re-insert so the most recent path ends up last
        self._pending.pop(event.path, None)
        self._pending[event.path] = event
        self._pending_count += 1

        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._fire)

    def flush(self) -> None:
        """Emit immediately if anything is pending."""
        if self._timer is not None:
            self._timer.cancel()
        self._fire()

    def _fire(self) -> None:
        self._timer = None
        if not self._pending:
            return
        events = list(self._pending.values())
        count = self._pending_count
        self._pending = {}
        self._pending_count = 0
        self._emit(events, count)

    def _emit(self, events: list[ChangeEvent], count: int) -> None:
        self._deliver(CoalescedSignal(label=events[-1].changed_name, event_count=count))

    def _deliver(self, signal: CoalescedSignal) -> None:
        self._log.debug(
            "Coalesced %d event(s) into one signal (%s)", signal.event_count, signal.label
        )
        try:
            self._on_signal(signal)
        except Exception:
            self._log.exception("Error delivering reload signal")

    def close(self) -> None:
        """Cancel the pending timer and forget pending events."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = {}
        self._pending_count = 0


class DebounceCoalescer(ChangeCoalescer):
    """Time-window coalescing: one signal per quiet period."""


_UNSEEN = object()


def file_digest(path: Path) -> str | None:
    """SHA-1 of a file's bytes, or None if it cannot be read."""
    try:
        return hashlib.sha1(path.read_bytes()).hexdigest()
    except OSError:
        return None


def snapshot_digests(targets: list[WatchTarget]) -> dict[Path, str | None]:
    """Digest every file the targets would report changes for."""
    result: dict[Path, str | None] = {}
    for target in targets:
        if not target.is_directory:
            result[target.path] = file_digest(target.path)
            continue
        policy = FilterPolicy(target.extensions)
        for file in target.path.rglob("*"):
            if file.is_file() and policy.accepts(file.relative_to(target.path).as_posix()):
                result[file] = file_digest(file)
    return result


class ContentCoalescer(ChangeCoalescer):
    """Debounce, then emit only if file content actually changed.

    Guards against touch events and saves that leave a file unchanged.
    Files are hashed in a worker thread so the event loop never blocks on
    disk reads.
    """

    def __init__(
        self,
        on_signal: SignalCallback,
        debounce: float = DEFAULT_DEBOUNCE,
        quiet: bool = False,
    ) -> None:
        super().__init__(on_signal, debounce=debounce, quiet=quiet)
        self._digests: dict[Path, str | None] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    async def prime(self, targets: Iterable[WatchTarget]) -> None:
        """Record current digests of every watched file without emitting.

        Files first seen after priming count as changed on their first event.
        """
        digests = await asyncio.to_thread(snapshot_digests, list(targets))
        self._digests.update(digests)
        self._log.debug("Recorded content of %d file(s)", len(digests))

    def digest_of(self, path: Path) -> str | None:
        return self._digests.get(path)

    def _emit(self, events: list[ChangeEvent], count: int) -> None:
        task = asyncio.get_running_loop().create_task(self._compare_and_emit(events, count))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _compare_and_emit(self, events: list[ChangeEvent], count: int) -> None:
        paths = [event.path for event in events]
        digests = await asyncio.to_thread(lambda: {p: file_digest(p) for p in paths})

        changed = [
            event
            for event in events
            if self._digests.get(event.path, _UNSEEN) != digests[event.path]
        ]
        self._digests.update(digests)

        if not changed:
            self._log.debug("Content unchanged after %d event(s), no reload", count)
            return
        self._deliver(CoalescedSignal(label=changed[-1].changed_name, event_count=count))

    def close(self) -> None:
        super().close()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()


def create_coalescer(
    strategy: str,
    on_signal: SignalCallback,
    debounce: float = DEFAULT_DEBOUNCE,
    quiet: bool = False,
) -> ChangeCoalescer:
    """Build the coalescer named by the ``coalesce`` option."""
    if strategy == "content":
        return ContentCoalescer(on_signal, debounce=debounce, quiet=quiet)
    return DebounceCoalescer(on_signal, debounce=debounce, quiet=quiet)
