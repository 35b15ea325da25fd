"""Registry of browser sessions connected to the reload channel."""

from __future__ import annotations

import contextlib
import time
import uuid
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from templatesreload.logging import get_logger


@runtime_checkable
class DeliveryHandle(Protocol):
    """Transport-specific way of getting a message to one browser."""

    def deliver(self, message: str) -> None:
        """Hand over a message. Raises DeliveryError if that is impossible."""
        ...

    def close(self) -> None:
        """Release the handle. Must be idempotent."""
        ...


@dataclass
class ConnectedClient:
    """One open reload channel."""

    id: str
    handle: DeliveryHandle
    transport: str
    connected_at: float = field(default_factory=time.time)


class ClientRegistry:
    """Tracks connected clients for one installation.

    All access happens on the event loop, so no locking is needed.
    Removal is idempotent: disconnect, transport error and failed delivery
    may all report the same client.
    """

    def __init__(self, quiet: bool = False) -> None:
        self._clients: dict[str, ConnectedClient] = {}
        self._log = get_logger("channel", quiet=quiet)

    def register(self, handle: DeliveryHandle, transport: str) -> ConnectedClient:
        """Add a client whose handle is ready to receive messages."""
        client = ConnectedClient(id=uuid.uuid4().hex[:12], handle=handle, transport=transport)
        self._clients[client.id] = client
        self._log.debug(
            "Client %s connected via %s (%d connected)", client.id, transport, len(self._clients)
        )
        return client

    def remove(self, client_id: str, reason: str = "disconnected") -> bool:
        """Remove a client and close its handle.

        Returns:
            True if the client was registered, False if it was already gone.
        """
        client = self._clients.pop(client_id, None)
        if client is None:
            return False
        client.handle.close()
        self._log.debug(
            "Client %s removed: %s (%d connected)", client_id, reason, len(self._clients)
        )
        return True

    def get(self, client_id: str) -> ConnectedClient | None:
        return self._clients.get(client_id)

    def snapshot(self) -> list[ConnectedClient]:
        """Clients registered right now, safe to iterate while removing."""
        return list(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def close_all(self, reason: str = "shutting down") -> int:
        """Close every handle and empty the registry."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            with contextlib.suppress(Exception):
                client.handle.close()
        if clients:
            self._log.info("Closed %d reload connection(s): %s", len(clients), reason)
        return len(clients)
