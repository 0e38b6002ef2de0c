"""
Transport interface for MineBot.

A transport owns the game connection. MineBot only needs two things from it:
- send a raw chat line
- deliver inbound chat events to subscribers

Connection lifecycle (login, reconnects) belongs to the concrete transport.
"""

import asyncio
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Awaitable

from loguru import logger


@dataclass(frozen=True)
class InboundEvent:
    """A raw chat event received from the server."""
    raw_text: str
    source_tag: str = "chat"
    payload: Any = None  # Structured message tree (e.g. JSON chat component)
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return self.raw_text


# Listeners may be plain or async callables
EventListener = Callable[[InboundEvent], Awaitable[None] | None]


class Transport(ABC):
    """
    Base class for chat transports.

    Subclasses implement `send`. Inbound events are pushed through `emit`,
    which fans them out to every subscribed listener.
    """

    name: str = "base"

    def __init__(self):
        self._listeners: list[EventListener] = []

    @abstractmethod
    async def send(self, raw_line: str) -> None:
        """Send one raw chat line to the server."""
        pass

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener for inbound events."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event: InboundEvent) -> None:
        """
        Deliver an inbound event to all listeners.

        A failing listener is logged and does not stop delivery to the rest.
        """
        # Copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Inbound listener error: {e}")


class ConsoleTransport(Transport):
    """
    Local transport for trying commands without a game server.

    Each stdin line becomes an inbound event tagged "console"; sent lines are
    written to stdout.
    """

    name = "console"

    def __init__(self, out: Any = None):
        super().__init__()
        self._out = out or sys.stdout
        self._running = False

    async def send(self, raw_line: str) -> None:
        self._out.write(f"> {raw_line}\n")
        self._out.flush()

    async def run(self) -> None:
        """Read stdin until EOF or stop()."""
        self._running = True
        logger.info("Console transport started")

        while self._running:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.rstrip("\n")
            if line:
                await self.emit(InboundEvent(raw_text=line, source_tag="console"))

        self._running = False
        logger.info("Console transport stopped")

    def stop(self) -> None:
        self._running = False
