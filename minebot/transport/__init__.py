"""Transport layer: the connection that delivers chat events and sends lines."""

from minebot.transport.base import (
    InboundEvent,
    EventListener,
    Transport,
    ConsoleTransport,
)

__all__ = [
    "InboundEvent",
    "EventListener",
    "Transport",
    "ConsoleTransport",
]
