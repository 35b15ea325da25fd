"""Filesystem watching for templates-reload.

Validates watch targets, arms one change source per target, filters the
raw notifications and coalesces bursts into single reload signals.
"""

from templatesreload.watching.coalescer import (
    ChangeCoalescer,
    CoalescedSignal,
    ContentCoalescer,
    DebounceCoalescer,
    create_coalescer,
)
from templatesreload.watching.filters import FilterPolicy
from templatesreload.watching.targets import WatchTarget, validate_targets
from templatesreload.watching.watcher import (
    ChangeEvent,
    ChangeKind,
    PathWatcher,
    WatchSupervisor,
    make_source_factory,
)

__all__ = [
    "ChangeCoalescer",
    "ChangeEvent",
    "ChangeKind",
    "CoalescedSignal",
    "ContentCoalescer",
    "DebounceCoalescer",
    "FilterPolicy",
    "PathWatcher",
    "WatchSupervisor",
    "WatchTarget",
    "create_coalescer",
    "make_source_factory",
    "validate_targets",
]
