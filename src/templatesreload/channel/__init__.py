"""Reload channel: connected-client registry, transports and broadcast."""

from templatesreload.channel.broadcast import BroadcastChannel
from templatesreload.channel.registry import ClientRegistry, ConnectedClient, DeliveryHandle
from templatesreload.channel.transports import (
    CONNECTED,
    RELOAD,
    FutureHandle,
    PollTransport,
    PushTransport,
    QueueHandle,
    Transport,
    create_transport,
    format_event,
)

__all__ = [
    "BroadcastChannel",
    "ClientRegistry",
    "ConnectedClient",
    "DeliveryHandle",
    "Transport",
    "PushTransport",
    "PollTransport",
    "QueueHandle",
    "FutureHandle",
    "create_transport",
    "format_event",
    "CONNECTED",
    "RELOAD",
]
