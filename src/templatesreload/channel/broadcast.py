"""Fan-out of reload signals to every connected browser."""

from __future__ import annotations

from typing import TYPE_CHECKING

from templatesreload.channel.registry import ClientRegistry
from templatesreload.channel.transports import RELOAD, Transport
from templatesreload.errors import DeliveryError
from templatesreload.logging import get_logger

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from templatesreload.watching.coalescer import CoalescedSignal


class BroadcastChannel:
    """Delivers reload signals over the configured transport.

    The transport strategy (push or poll) only changes how a client is held
    open; registration, pruning and fan-out are the same for both.
    """

    def __init__(self, registry: ClientRegistry, transport: Transport, quiet: bool = False) -> None:
        self._registry = registry
        self._transport = transport
        self._log = get_logger("channel", quiet=quiet)
        self.broadcast_count = 0

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def transport(self) -> Transport:
        return self._transport

    async def handle(self, request: Request) -> Response:
        """Endpoint handler: open a channel for the requesting browser."""
        return await self._transport.handle(request)

    def broadcast(self, signal: CoalescedSignal | None = None) -> int:
        """Send ``reload`` to every client registered right now.

        A client whose delivery fails is removed; the others still get the
        message.

        Returns:
            Number of clients the message was handed to.
        """
        clients = self._registry.snapshot()
        if not clients:
            return 0

        delivered = 0
        for client in clients:
            try:
                client.handle.deliver(RELOAD)
                delivered += 1
            except DeliveryError as e:
                self._registry.remove(client.id, reason=f"delivery failed: {e}")

        self.broadcast_count += 1
        label = signal.label if signal is not None and signal.label else None
        if label:
            self._log.info("Reloading %d browser(s) after change to %s", delivered, label)
        else:
            self._log.info("Reloading %d browser(s)", delivered)
        return delivered

    def close(self) -> int:
        """Drop every connected client."""
        return self._registry.close_all()
