"""Live reload installation lifecycle.

``setup()`` validates the configuration, builds one :class:`LiveReload`
that owns every piece of state (registry, channel, coalescer, watchers),
and installs it on the application:

- a GET route for the reload channel
- the HTML injection middleware
- start/stop hooks around the application's lifespan
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import AsyncIterator, Iterable, Mapping
from pathlib import Path
from typing import Any

from starlette.applications import Starlette

from templatesreload.channel.broadcast import BroadcastChannel
from templatesreload.channel.registry import ClientRegistry
from templatesreload.channel.transports import create_transport
from templatesreload.client import render_client_script
from templatesreload.config.environment import is_production
from templatesreload.config.loader import load_config
from templatesreload.config.schema import ReloadOptions
from templatesreload.injection import ResponseInjector
from templatesreload.logging import get_logger, setup_logging
from templatesreload.routes import register_injection, register_reload_route
from templatesreload.watching.coalescer import (
    CoalescedSignal,
    ContentCoalescer,
    create_coalescer,
)
from templatesreload.watching.targets import TargetSpec, WatchTarget, validate_targets
from templatesreload.watching.watcher import (
    SourceFactory,
    WatchSupervisor,
    make_source_factory,
)


class LiveReload:
    """One live reload installation.

    Nothing here is shared between installations, so several apps (or
    several tests) can each run their own.

    Example:
        live = LiveReload(validate_targets([{"path": "views", "extensions": [".html"]}]))
        async with live:
            ...
    """

    def __init__(
        self,
        targets: list[WatchTarget],
        options: ReloadOptions | None = None,
        source_factory: SourceFactory | None = None,
    ) -> None:
        self.options = options or ReloadOptions()
        quiet = self.options.quiet
        self._targets = targets
        self._log = get_logger(quiet=quiet)

        self.registry = ClientRegistry(quiet=quiet)
        self.transport = create_transport(
            self.options.transport,
            self.registry,
            check_interval=self.options.disconnect_check_interval,
        )
        self.channel = BroadcastChannel(self.registry, self.transport, quiet=quiet)
        self.coalescer = create_coalescer(
            self.options.coalesce,
            self.channel.broadcast,
            debounce=self.options.debounce_ms / 1000.0,
            quiet=quiet,
        )
        self.injector = ResponseInjector(
            render_client_script(
                endpoint=self.options.endpoint,
                transport=self.options.transport,
                reconnect_delay_ms=self.options.reconnect_delay_ms,
                max_reconnect_attempts=self.options.max_reconnect_attempts,
            )
        )
        self.supervisor = WatchSupervisor(
            targets,
            self.coalescer,
            source_factory=source_factory or make_source_factory(self.options.poll_interval_ms),
            quiet=quiet,
        )
        self._started_at: float | None = None

    @property
    def targets(self) -> list[WatchTarget]:
        return list(self._targets)

    def is_running(self) -> bool:
        return self._started_at is not None

    async def start(self) -> None:
        """Arm the watchers. Must be called from within the event loop."""
        if self.is_running():
            return
        if not self._targets:
            self._log.warning("No watch targets configured; only manual reloads will be sent")
        if isinstance(self.coalescer, ContentCoalescer):
            await self.coalescer.prime(self._targets)
        await self.supervisor.start()
        self._started_at = time.time()

    async def stop(self) -> None:
        """Stop watching and close every reload connection."""
        if not self.is_running():
            return
        await self.supervisor.stop()
        self.coalescer.close()
        self.channel.close()
        self._started_at = None
        self._log.debug("Live reload stopped")

    async def __aenter__(self) -> LiveReload:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    def notify(self, label: str | None = None) -> int:
        """Tell every connected browser to reload now.

        Returns:
            Number of browsers the reload was sent to.
        """
        return self.channel.broadcast(CoalescedSignal(label=label))

    def status(self) -> dict[str, Any]:
        """Diagnostic snapshot of this installation."""
        disabled = self.supervisor.disabled_targets
        return {
            "running": self.is_running(),
            "uptime": time.time() - self._started_at if self._started_at else 0,
            "transport": self.transport.name,
            "endpoint": self.options.endpoint,
            "clients": len(self.registry),
            "broadcasts": self.channel.broadcast_count,
            "targets": [str(t.path) for t in self._targets if t not in disabled],
            "disabled_targets": [str(t.path) for t in disabled],
        }

    def install(self, app: Starlette) -> None:
        """Register the route, the middleware and the lifespan hooks on ``app``."""
        register_reload_route(app, self.options.endpoint, self.channel)
        register_injection(app, self.injector)
        self._wrap_lifespan(app)

    def _wrap_lifespan(self, app: Starlette) -> None:
        original = app.router.lifespan_context

        @contextlib.asynccontextmanager
        async def lifespan(app_: Any) -> AsyncIterator[Any]:
            async with original(app_) as state:
                await self.start()
                try:
                    yield state
                finally:
                    await self.stop()

        app.router.lifespan_context = lifespan


def setup(
    app: Starlette,
    watch: Iterable[TargetSpec] | None = None,
    options: Mapping[str, Any] | ReloadOptions | None = None,
    *,
    project_root: str | Path | None = None,
    source_factory: SourceFactory | None = None,
) -> LiveReload | None:
    """Enable automatic browser reload for template and asset changes.

    Does nothing and returns None when the process declares a production
    deployment (``APP_ENV`` or ``ENV`` set to ``production``).

    Args:
        app: The FastAPI or Starlette application.
        watch: Files or directories to watch. Directories need an
            ``extensions`` list. Defaults to the ``watch`` list of the
            project config file.
        options: ``quiet``, ``pollIntervalMs`` and the other ReloadOptions.
        project_root: Where to look for templates-reload.yaml (default: cwd).
        source_factory: Replacement change source, mainly for tests.

    Returns:
        The installed LiveReload, or None in production.

    Raises:
        ConfigurationError: Invalid options or a directory target without
            extensions. Raised before anything is installed on ``app``.
    """
    if is_production():
        return None

    config = load_config(project_root=project_root, options=options)
    targets = validate_targets(config.watch if watch is None else watch)

    setup_logging(config.logging)

    live = LiveReload(targets, config.options, source_factory=source_factory)
    live.install(app)
    return live
