"""
Command definitions and registry for MineBot.

A command is a frozen CommandSpec (its configuration) plus an async handler.
Reloading a command registers a new spec under the same name, which replaces
the old one wholesale.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Awaitable, Iterable, TYPE_CHECKING

from loguru import logger

from minebot.errors import RegistryLookupFailure
from minebot.queue.channel import ChatType
from minebot.users.store import UserContext

if TYPE_CHECKING:
    from minebot.queue.channel import RateLimitedChannel, CorrelatedReply
    from minebot.users.store import UserStore


# Channels a command accepts when its spec does not say
DEFAULT_ALLOWED_CHANNELS = frozenset({
    ChatType.LOCAL,
    ChatType.GLOBAL,
    ChatType.WHISPER,
    ChatType.FACTION,
})


@dataclass(frozen=True)
class CommandSpec:
    """Configuration of a command."""
    name: str
    aliases: frozenset[str] = frozenset()
    required_args: int = 0
    required_permission: str = ""  # "domain.action", comma-separated alternatives
    allowed_channels: frozenset[str] = DEFAULT_ALLOWED_CHANNELS
    cooldown_ms: int = 0
    is_active: bool = True
    description: str = ""
    usage: str = ""

    def __post_init__(self):
        # Accept any iterable for the set fields
        object.__setattr__(self, "name", self.name.lower())
        object.__setattr__(self, "aliases", frozenset(a.lower() for a in self.aliases))
        object.__setattr__(self, "allowed_channels", frozenset(self.allowed_channels))
        if self.required_args < 0:
            raise ValueError("required_args must be >= 0")
        if self.cooldown_ms < 0:
            raise ValueError("cooldown_ms must be >= 0")

    @property
    def all_names(self) -> frozenset[str]:
        return self.aliases | {self.name}


@dataclass
class CommandContext:
    """
    Services available to command handlers.

    The pipeline hands each handler a copy with `spec` set to the command
    being executed.
    """
    outbound: "RateLimitedChannel | None" = None
    users: "UserStore | None" = None
    registry: "CommandRegistry | None" = None
    spec: CommandSpec | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def reply(self, channel: str, user: UserContext | str, lines: str | Iterable[str]) -> None:
        """Send lines back on the channel the command came from."""
        if self.outbound is None:
            raise RuntimeError("No outbound channel configured")
        username = user.username if isinstance(user, UserContext) else user
        self.outbound.send(channel, lines, target_user=username)

    def send(self, channel: str, lines: str | Iterable[str], target_user: str = "") -> None:
        if self.outbound is None:
            raise RuntimeError("No outbound channel configured")
        self.outbound.send(channel, lines, target_user=target_user)

    async def send_and_await_reply(
        self,
        command_text: str,
        patterns: Any,
        timeout_ms: int | None = None,
    ) -> "CorrelatedReply":
        if self.outbound is None:
            raise RuntimeError("No outbound channel configured")
        return await self.outbound.send_and_await_reply(command_text, patterns, timeout_ms)


# Handler signature: (context, channel, user, *args)
CommandHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class RegisteredCommand:
    """A spec bound to its handler."""
    spec: CommandSpec
    handler: CommandHandler

    @property
    def name(self) -> str:
        return self.spec.name


class CommandRegistry:
    """
    Registry of commands addressable by name or alias.

    Every name and alias of a registered command resolves to it. Removing a
    command removes all of its names in one step.
    """

    def __init__(self):
        self._commands: dict[str, RegisteredCommand] = {}  # name -> command
        self._names: dict[str, str] = {}  # name or alias -> name

    def register(self, spec: CommandSpec, handler: CommandHandler) -> RegisteredCommand:
        """
        Register a command, replacing any command with the same name.

        Raises:
            ValueError: A name or alias belongs to a different command.
        """
        for key in spec.all_names:
            owner = self._names.get(key)
            if owner is not None and owner != spec.name:
                raise ValueError(f"Name {key!r} is already used by command {owner!r}")

        replaced = spec.name in self._commands
        if replaced:
            self._remove(spec.name)

        command = RegisteredCommand(spec=spec, handler=handler)
        self._commands[spec.name] = command
        for key in spec.all_names:
            self._names[key] = spec.name

        verb = "reloaded" if replaced else "loaded"
        logger.info(f"Command {spec.name} {verb} (names: {', '.join(sorted(spec.all_names))})")
        return command

    def unregister(self, names: str | Iterable[str]) -> list[str]:
        """
        Remove the commands owning any of the given names or aliases.

        Returns:
            Canonical names of the removed commands.
        """
        if isinstance(names, str):
            names = [names]

        removed = []
        for key in names:
            canonical = self._names.get(key.lower())
            if canonical is None or canonical in removed:
                continue
            self._remove(canonical)
            removed.append(canonical)
            logger.info(f"Command {canonical} unloaded")
        return removed

    def _remove(self, name: str) -> None:
        command = self._commands.pop(name)
        for key in command.spec.all_names:
            if self._names.get(key) == name:
                del self._names[key]

    def get(self, name: str) -> RegisteredCommand | None:
        """Look up a command by name or alias, case-insensitively."""
        canonical = self._names.get(name.lower())
        if canonical is None:
            return None
        return self._commands.get(canonical)

    def require(self, name: str) -> RegisteredCommand:
        command = self.get(name)
        if command is None:
            raise RegistryLookupFailure(name)
        return command

    def list_commands(self) -> list[CommandSpec]:
        return [self._commands[n].spec for n in sorted(self._commands)]

    def names(self) -> list[str]:
        """All resolvable names, aliases included."""
        return sorted(self._names)

    def get_help(self, command_name: str = "", prefix: str = "@") -> list[str]:
        """Help lines for one command, or a summary of all commands."""
        if command_name:
            command = self.get(command_name)
            if command is None:
                return [f"No help for: {command_name}"]
            spec = command.spec
            lines = [f"{prefix}{spec.name} {spec.usage}".rstrip()]
            if spec.description:
                lines.append(spec.description)
            if spec.aliases:
                lines.append("Aliases: " + ", ".join(sorted(spec.aliases)))
            return lines

        active = [s.name for s in self.list_commands() if s.is_active]
        return ["Commands: " + ", ".join(prefix + n for n in active)]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._names

    def __len__(self) -> int:
        return len(self._commands)
