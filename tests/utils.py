"""Shared test utilities for templates-reload tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from templatesreload.errors import DeliveryError
from templatesreload.watching.targets import WatchTarget


class FakeHandle:
    """Delivery handle that records messages instead of sending them."""

    def __init__(self, should_fail: bool = False) -> None:
        self.should_fail = should_fail
        self.messages: list[str] = []
        self.closed = False
        self.close_calls = 0

    def deliver(self, message: str) -> None:
        if self.should_fail:
            raise DeliveryError("connection reset")
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True
        self.close_calls += 1


class FakeChangeSource:
    """Stands in for watchfiles.awatch.

    Tests push raw ``(Change, path)`` batches with :meth:`emit`; each armed
    target consumes its own queue.
    """

    def __init__(self) -> None:
        self._queues: dict[Path, asyncio.Queue[set[tuple[Any, str]]]] = {}
        self._errors: dict[Path, OSError] = {}
        self.armed: list[WatchTarget] = []

    def fail(self, path: str | Path, error: OSError) -> None:
        """Make arming ``path`` raise ``error``."""
        self._errors[Path(path)] = error

    def emit(self, path: str | Path, *changes: tuple[Any, str]) -> None:
        self._queue(Path(path)).put_nowait(set(changes))

    def _queue(self, path: Path) -> asyncio.Queue[set[tuple[Any, str]]]:
        if path not in self._queues:
            self._queues[path] = asyncio.Queue()
        return self._queues[path]

    def __call__(self, target: WatchTarget, stop_event: asyncio.Event) -> AsyncIterator[set[tuple[Any, str]]]:
        return self._iterate(target, stop_event)

    async def _iterate(
        self, target: WatchTarget, stop_event: asyncio.Event
    ) -> AsyncIterator[set[tuple[Any, str]]]:
        self.armed.append(target)
        if target.path in self._errors:
            raise self._errors[target.path]
        queue = self._queue(target.path)
        while not stop_event.is_set():
            yield await queue.get()


async def settle(seconds: float = 0.0) -> None:
    """Let queued callbacks and tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)
    if seconds:
        await asyncio.sleep(seconds)


class StreamingCall:
    """Drives one long-lived GET request against an ASGI app.

    Unlike TestClient this does not wait for the response to finish, so
    held and streaming responses can be observed while they are open.
    """

    def __init__(self, app: Any, path: str, spec_version: str = "2.4") -> None:
        self._app = app
        self._path = path
        self._spec_version = spec_version
        self._request_sent = False
        self._disconnected = asyncio.Event()
        self._started = asyncio.Event()
        self._completed = asyncio.Event()
        self._progress = asyncio.Event()
        self.status: int | None = None
        self.headers: dict[str, str] = {}
        self.chunks: list[bytes] = []
        self.task: asyncio.Task[None] | None = None

    @property
    def body(self) -> str:
        return b"".join(self.chunks).decode("utf-8")

    @property
    def completed(self) -> bool:
        return self._completed.is_set()

    def start(self) -> StreamingCall:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": self._spec_version},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": self._path,
            "raw_path": self._path.encode(),
            "query_string": b"",
            "root_path": "",
            "headers": [(b"host", b"testserver"), (b"accept", b"text/event-stream")],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
            "state": {},
        }
        self.task = asyncio.create_task(self._app(scope, self._receive, self._send))
        return self

    async def _receive(self) -> dict[str, Any]:
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = {k.decode().lower(): v.decode() for k, v in message["headers"]}
            self._started.set()
        elif message["type"] == "http.response.body":
            self.chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                self._completed.set()
        self._progress.set()

    async def wait_started(self, timeout: float = 1.0) -> None:
        await asyncio.wait_for(self._started.wait(), timeout)

    async def wait_for_body(self, text: str, timeout: float = 1.0) -> None:
        """Wait until the accumulated body contains ``text``."""

        async def _wait() -> None:
            while text not in self.body:
                self._progress.clear()
                await self._progress.wait()

        await asyncio.wait_for(_wait(), timeout)

    async def wait_completed(self, timeout: float = 1.0) -> None:
        await asyncio.wait_for(self._completed.wait(), timeout)

    async def disconnect(self, timeout: float = 1.0) -> None:
        """Simulate the browser closing the connection and wait for the app."""
        self._disconnected.set()
        if self.task is not None:
            await asyncio.wait_for(asyncio.shield(self.task), timeout)
