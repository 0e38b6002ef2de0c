"""
Error types for MineBot.

Only a few failures are raised as exceptions. Command pipeline rejections
are reported through the notifier instead (see commands.pipeline).
"""


class MineBotError(Exception):
    """Base class for MineBot errors."""


class ReplyTimeout(MineBotError, TimeoutError):
    """No inbound event matched a correlated reply before its deadline."""

    def __init__(self, command: str, timeout_ms: int):
        self.command = command
        self.timeout_ms = timeout_ms
        super().__init__(f"No reply to {command!r} within {timeout_ms}ms")


class UnknownChannelKind(MineBotError, KeyError):
    """A channel kind name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown channel kind: {self.name}"


class RegistryLookupFailure(MineBotError, LookupError):
    """A command name or alias is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Command not found: {name}")
