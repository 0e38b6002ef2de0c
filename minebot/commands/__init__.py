"""
Command system for MineBot.

Provides:
- Command specs and the name/alias registry
- Argument parsing
- Per-user cooldowns
- The gated execution pipeline
"""

from minebot.commands.spec import (
    CommandSpec,
    CommandContext,
    CommandRegistry,
    RegisteredCommand,
)
from minebot.commands.parser import (
    ParsedCommand,
    parse_command,
    tokenize_arguments,
)
from minebot.commands.cooldown import CooldownTracker
from minebot.commands.pipeline import (
    CommandPipeline,
    ChatNotifier,
    GateFailure,
    InvocationResult,
)

__all__ = [
    # Specs
    "CommandSpec",
    "CommandContext",
    "CommandRegistry",
    "RegisteredCommand",
    # Parsing
    "ParsedCommand",
    "parse_command",
    "tokenize_arguments",
    # Execution
    "CooldownTracker",
    "CommandPipeline",
    "ChatNotifier",
    "GateFailure",
    "InvocationResult",
]
