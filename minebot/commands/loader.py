"""
Command definitions from a JSON file.

The file holds a list of command records. Each record names a handler from
a known set of handler functions and carries the CommandSpec fields:

    [
      {"name": "ping", "handler": "ping", "cooldown_ms": 5000},
      {"name": "tp", "handler": "teleport", "aliases": ["teleport"],
       "required_args": 1, "required_permission": "admin.tp,mod.*"}
    ]

Calling `load()` again applies changes: records are re-registered (replacing
the old specs) and commands that disappeared from the file are removed.
Watching the file for changes is up to the caller.
"""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from minebot.commands.spec import (
    DEFAULT_ALLOWED_CHANNELS,
    CommandHandler,
    CommandRegistry,
    CommandSpec,
)


class CommandDefinition(BaseModel):
    """One command record. Types are strict: "false" is not a bool."""
    model_config = ConfigDict(strict=True)

    name: str = Field(min_length=1)
    handler: str = ""  # Defaults to the command name
    aliases: list[str] = Field(default_factory=list)
    required_args: int = Field(default=0, ge=0)
    required_permission: str = ""
    allowed_channels: list[str] | None = None  # None = DEFAULT_ALLOWED_CHANNELS
    cooldown_ms: int = Field(default=0, ge=0)
    is_active: bool = True
    description: str = ""
    usage: str = ""

    def to_spec(self) -> CommandSpec:
        channels = DEFAULT_ALLOWED_CHANNELS if self.allowed_channels is None else self.allowed_channels
        return CommandSpec(
            name=self.name,
            aliases=frozenset(self.aliases),
            required_args=self.required_args,
            required_permission=self.required_permission,
            allowed_channels=frozenset(channels),
            cooldown_ms=self.cooldown_ms,
            is_active=self.is_active,
            description=self.description,
            usage=self.usage,
        )


class CommandDefinitionLoader:
    """Loads command specs from a JSON file into a registry."""

    def __init__(
        self,
        path: Path | str,
        registry: CommandRegistry,
        handlers: dict[str, CommandHandler],
    ):
        self.path = Path(path).expanduser()
        self.registry = registry
        self.handlers = handlers
        self._loaded: set[str] = set()

    def read(self) -> list[dict[str, Any]]:
        """Read raw records from the file."""
        if not self.path.exists():
            logger.warning(f"Command definitions not found: {self.path}")
            return []
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("commands", [])
        if not isinstance(data, list):
            raise ValueError(f"{self.path}: expected a list of commands")
        return data

    def load(self) -> list[str]:
        """
        Register every valid record; unregister commands no longer present.

        Invalid records are logged and skipped.

        Returns:
            Names of the commands now loaded from the file.
        """
        try:
            records = self.read()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read command definitions {self.path}: {e}")
            return sorted(self._loaded)

        loaded: set[str] = set()
        for record in records:
            try:
                definition = CommandDefinition.model_validate(record)
                spec = definition.to_spec()
                handler_name = definition.handler or spec.name
                handler = self.handlers.get(handler_name)
                if handler is None:
                    raise KeyError(f"unknown handler {handler_name!r}")
                self.registry.register(spec, handler)
                loaded.add(spec.name)
            except (ValidationError, KeyError, ValueError) as e:
                logger.error(f"Skipping command definition {record!r}: {e}")

        removed = self._loaded - loaded
        if removed:
            self.registry.unregister(sorted(removed))

        self._loaded = loaded
        return sorted(loaded)
