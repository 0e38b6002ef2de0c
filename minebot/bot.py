"""
MineBot composition root.

Builds one instance of each component and wires them together:

    transport -> Dispatcher -> CommandPipeline -> handler -> RateLimitedChannel -> transport

Everything is owned by the Bot instance; there is no module-level state.
"""

from typing import Any, Iterable

from loguru import logger

from minebot.commands.builtin import BUILTIN_HANDLERS, register_builtin_commands
from minebot.commands.cooldown import CooldownTracker
from minebot.commands.loader import CommandDefinitionLoader
from minebot.commands.pipeline import ChatNotifier, CommandPipeline
from minebot.commands.spec import (
    CommandContext,
    CommandHandler,
    CommandRegistry,
    CommandSpec,
    RegisteredCommand,
)
from minebot.config.schema import Config
from minebot.dialects.classifier import Classifier, get_classifier
from minebot.dispatch import DispatchConfig, Dispatcher
from minebot.queue.channel import ChannelKind, ChannelKindTable, RateLimitedChannel
from minebot.security.permissions import PermissionResolver
from minebot.transport.base import Transport
from minebot.users.store import InMemoryUserStore, JsonUserStore, UserStore


class Bot:
    """A chat command bot bound to one transport."""

    def __init__(
        self,
        transport: Transport,
        config: Config | None = None,
        users: UserStore | None = None,
        classifier: Classifier | None = None,
    ):
        self.config = config or Config()
        self.transport = transport

        self.kinds = ChannelKindTable(self.config.queue.as_table())
        self.outbound = RateLimitedChannel(
            transport,
            self.kinds,
            default_reply_timeout_ms=self.config.queue.reply_timeout_ms,
        )

        if users is None:
            store_path = self.config.store_path
            if store_path is not None:
                users = JsonUserStore(store_path, default_groups=self.config.store.default_groups)
            else:
                users = InMemoryUserStore(default_groups=self.config.store.default_groups)
        self.users = users

        self.registry = CommandRegistry()
        self.cooldowns = CooldownTracker(self.config.commands.cooldown_sweep_seconds)
        self.notifier = ChatNotifier(
            self._send_notice,
            notify_blacklisted=self.config.commands.notify_blacklisted,
        )
        self.pipeline = CommandPipeline(
            cooldowns=self.cooldowns,
            permissions=PermissionResolver(),
            notifier=self.notifier,
        )
        self.context = CommandContext(
            outbound=self.outbound,
            users=self.users,
            registry=self.registry,
            extra={"prefix": self.config.commands.prefix, "bot": self},
        )

        if classifier is None:
            classifier = get_classifier(self.config.server.dialect, self.config.server.host)
        self.dispatcher = Dispatcher(
            classifier,
            self.registry,
            self.pipeline,
            self.users,
            context=self.context,
            config=DispatchConfig(
                prefix=self.config.commands.prefix,
                ignore_senders=[self.config.server.username],
            ),
        )

        self.handlers: dict[str, CommandHandler] = dict(BUILTIN_HANDLERS)
        if self.config.commands.builtins:
            register_builtin_commands(self.registry)

        self.loader: CommandDefinitionLoader | None = None
        definitions = self.config.definitions_path
        if definitions is not None:
            self.loader = CommandDefinitionLoader(definitions, self.registry, self.handlers)

        self._running = False

    def _send_notice(self, channel: str, text: str, username: str) -> None:
        self.outbound.send(channel, text, target_user=username)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register_command(self, spec: CommandSpec, handler: CommandHandler) -> RegisteredCommand:
        """Register (or replace) a command and make its handler loadable by name."""
        self.handlers.setdefault(spec.name, handler)
        return self.registry.register(spec, handler)

    def command(self, name: str, **spec_fields: Any):
        """
        Decorator form of register_command.

        Example:
            @bot.command("hello", aliases={"hi"}, cooldown_ms=2000)
            async def hello(ctx, channel, user, *args):
                ctx.reply(channel, user, f"Hello, {user.username}!")
        """
        def decorator(handler: CommandHandler) -> CommandHandler:
            self.register_command(CommandSpec(name=name, **spec_fields), handler)
            return handler
        return decorator

    def unregister_command(self, names: str | Iterable[str]) -> list[str]:
        """Remove commands (all aliases included) and their cooldown state."""
        removed = self.registry.unregister(names)
        for name in removed:
            self.cooldowns.forget_command(name)
        return removed

    def reload_commands(self) -> list[str]:
        """Re-read the command definitions file, if configured."""
        if self.loader is None:
            return []
        return self.loader.load()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send_message(self, channel: str, lines: str | Iterable[str], username: str = "") -> None:
        self.outbound.send(channel, lines, target_user=username)

    def add_channel_kind(self, name: str, prefix: str = "", pace_ms: int = 4000) -> ChannelKind:
        return self.kinds.add_channel_kind(name, prefix, pace_ms)

    def set_pace(self, name: str, pace_ms: int) -> None:
        self.kinds.set_pace(name, pace_ms)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Attach to the transport and start background work."""
        if self._running:
            return
        if self.loader is not None:
            self.loader.load()
        self.dispatcher.attach(self.transport)
        self.cooldowns.start()
        self.outbound.resume()
        self._running = True
        logger.info(f"MineBot started with {len(self.registry)} commands")

    async def stop(self) -> None:
        if not self._running:
            return
        await self.dispatcher.stop()
        await self.cooldowns.stop()
        await self.outbound.close()
        self._running = False
        logger.info("MineBot stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "commands": len(self.registry),
            "queue": self.outbound.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "cooldowns": self.cooldowns.get_stats(),
        }
