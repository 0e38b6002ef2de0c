"""
Inbound dispatcher for MineBot.

Flow:
1. Classify the raw event into (channel, sender, text)
2. Ignore text without the command prefix
3. Parse command name and arguments
4. Look up the command (name or alias, case-insensitive)
5. Fetch the user and run the command pipeline

Unrecognized events and unknown commands are dropped without a reply.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from minebot.commands.parser import DEFAULT_PREFIX, parse_command
from minebot.commands.pipeline import CommandPipeline, InvocationResult
from minebot.commands.spec import CommandContext, CommandRegistry
from minebot.dialects.classifier import Classifier
from minebot.transport.base import InboundEvent, Transport
from minebot.users.store import UserStore


@dataclass
class DispatchConfig:
    """Configuration for the dispatcher."""
    prefix: str = DEFAULT_PREFIX
    ignore_senders: list[str] = field(default_factory=list)  # e.g. the bot's own name


class Dispatcher:
    """
    Routes inbound chat events to commands.

    Each event is handled in its own task so a slow handler never holds up
    delivery of later events (including replies it is waiting for).
    """

    def __init__(
        self,
        classifier: Classifier | None,
        registry: CommandRegistry,
        pipeline: CommandPipeline,
        users: UserStore,
        context: CommandContext | None = None,
        config: DispatchConfig | None = None,
    ):
        self.classifier = classifier
        self.registry = registry
        self.pipeline = pipeline
        self.users = users
        self.context = context or CommandContext(registry=registry, users=users)
        self.config = config or DispatchConfig()

        self._transport: Transport | None = None
        self._tasks: set[asyncio.Task] = set()

        # Stats
        self._received_count = 0
        self._unrecognized_count = 0
        self._unknown_command_count = 0
        self._dispatched_count = 0
        self._error_count = 0

    def attach(self, transport: Transport) -> None:
        """Start receiving events from a transport."""
        self._transport = transport
        transport.subscribe(self.on_event)
        logger.info("Dispatcher attached")

    def detach(self) -> None:
        if self._transport is not None:
            self._transport.unsubscribe(self.on_event)
            self._transport = None
            logger.info("Dispatcher detached")

    def on_event(self, event: InboundEvent) -> None:
        """Transport listener: schedule handling of one event."""
        task = asyncio.get_running_loop().create_task(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_event(self, event: InboundEvent) -> InvocationResult | None:
        """
        Handle one inbound event.

        Returns:
            The pipeline result, or None if the event was not a command.
        """
        self._received_count += 1
        try:
            return await self._handle(event)
        except Exception as e:
            # Never let one bad event take down the listener
            logger.error(f"Dispatcher error: {e}")
            self._error_count += 1
            return None

    async def _handle(self, event: InboundEvent) -> InvocationResult | None:
        if self.classifier is None:
            return None

        classified = self.classifier.classify(event.raw_text, event)
        if classified is None:
            self._unrecognized_count += 1
            return None

        if classified.sender in self.config.ignore_senders:
            return None

        parsed = parse_command(classified.text, self.config.prefix)
        if parsed is None:
            return None

        command = self.registry.get(parsed.name)
        if command is None:
            logger.warning(f"Command {parsed.name} not found")
            self._unknown_command_count += 1
            return None

        user = await self.users.get_user(classified.sender)
        self._dispatched_count += 1
        return await self.pipeline.execute(
            command,
            self.context,
            classified.channel,
            user,
            parsed.arguments,
        )

    async def drain(self) -> None:
        """Wait for all in-flight events to finish."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def stop(self) -> None:
        """Detach and cancel in-flight events."""
        self.detach()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.wait(set(self._tasks))

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "received_count": self._received_count,
            "unrecognized_count": self._unrecognized_count,
            "unknown_command_count": self._unknown_command_count,
            "dispatched_count": self._dispatched_count,
            "error_count": self._error_count,
            "in_flight": len(self._tasks),
            "pipeline": self.pipeline.get_stats(),
        }
