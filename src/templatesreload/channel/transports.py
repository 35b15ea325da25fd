"""Push and poll transports for the reload channel.

Both transports satisfy the same contract: a browser that opens the
endpoint is acknowledged, registered, receives ``reload`` when a signal is
broadcast, and is deregistered as soon as its connection goes away.

Wire vocabulary:
    push: ``data: connected\\n\\n`` once, then ``data: reload\\n\\n`` per signal
    poll: response headers (``X-Templates-Reload: connected``) immediately,
          empty body once a signal is due, ``closed`` when the channel shuts
          down without one
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from templatesreload.channel.registry import ClientRegistry
from templatesreload.errors import DeliveryError

CONNECTED = "connected"
RELOAD = "reload"
CLOSED = "closed"

ACK_HEADER = "X-Templates-Reload"

# Messages a push client may have queued before it counts as unreachable.
PUSH_QUEUE_SIZE = 16

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
}

POLL_HEADERS = {
    "Content-Type": "text/plain; charset=utf-8",
    "Cache-Control": "no-cache",
    "Access-Control-Allow-Origin": "*",
    ACK_HEADER: CONNECTED,
}


def format_event(message: str) -> str:
    """Frame a message as a Server-Sent Event."""
    return f"data: {message}\n\n"


class QueueHandle:
    """Delivery handle backed by a bounded queue (push transport)."""

    def __init__(self, maxsize: int = PUSH_QUEUE_SIZE) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: str) -> None:
        if self._closed:
            raise DeliveryError("stream already closed")
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            raise DeliveryError("client is not consuming its stream") from None

    async def next_message(self, timeout: float) -> str | None:
        """Wait up to ``timeout`` seconds for the next message."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._closed = True


class FutureHandle:
    """Delivery handle backed by a future (poll transport).

    A held poll request can be answered exactly once.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[str] = asyncio.get_running_loop().create_future()

    @property
    def closed(self) -> bool:
        return self._future.done()

    @property
    def answered(self) -> bool:
        return self._future.done() and not self._future.cancelled()

    def deliver(self, message: str) -> None:
        if self._future.done():
            raise DeliveryError("poll request already answered")
        self._future.set_result(message)

    async def wait(self, timeout: float) -> str | None:
        """Wait up to ``timeout`` seconds; None if nothing was delivered."""
        await asyncio.wait({self._future}, timeout=timeout)
        if self.answered:
            return self._future.result()
        return None

    def close(self) -> None:
        if not self._future.done():
            self._future.cancel()


class Transport:
    """Base class for reload channel transports."""

    name = "transport"

    def __init__(
        self,
        registry: ClientRegistry,
        check_interval: float = 1.0,
    ) -> None:
        self._registry = registry
        self._check_interval = check_interval

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    async def handle(self, request: Request) -> Response:
        """Answer one request to the reload endpoint."""
        raise NotImplementedError


class PushTransport(Transport):
    """Long-lived Server-Sent Events stream."""

    name = "push"

    async def handle(self, request: Request) -> Response:
        return StreamingResponse(self.stream(request), headers=SSE_HEADERS)

    async def stream(self, request: Request) -> AsyncIterator[str]:
        handle = QueueHandle()
        handle.deliver(CONNECTED)
        client = self._registry.register(handle, self.name)
        reason = "disconnected"
        try:
            while not handle.closed:
                message = await handle.next_message(self._check_interval)
                if message is None:
                    if await request.is_disconnected():
                        break
                    continue
                yield format_event(message)
        except Exception as e:
            reason = f"error: {e}"
            raise
        finally:
            self._registry.remove(client.id, reason=reason)


class PollTransport(Transport):
    """Held request answered once a signal is due.

    The browser re-issues the request right after handling the response.
    """

    name = "poll"

    async def handle(self, request: Request) -> Response:
        return StreamingResponse(self.hold(request), headers=POLL_HEADERS)

    async def hold(self, request: Request) -> AsyncIterator[bytes]:
        handle = FutureHandle()
        client = self._registry.register(handle, self.name)
        reason = "answered"
        try:
            while not handle.closed:
                if await handle.wait(self._check_interval) is not None:
                    break
                if await request.is_disconnected():
                    reason = "disconnected"
                    return
            if handle.answered:
                yield b""
            else:
                reason = CLOSED
                yield CLOSED.encode()
        except Exception as e:
            reason = f"error: {e}"
            raise
        finally:
            self._registry.remove(client.id, reason=reason)


def create_transport(
    name: str,
    registry: ClientRegistry,
    check_interval: float = 1.0,
) -> Transport:
    """Build the transport selected by the ``transport`` option."""
    if name == PollTransport.name:
        return PollTransport(registry, check_interval=check_interval)
    return PushTransport(registry, check_interval=check_interval)
