"""Configuration schema using Pydantic."""

from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from minebot.queue.channel import DEFAULT_CHANNEL_KINDS


class ChannelKindConfig(BaseModel):
    """Framing and pacing of one outbound channel kind."""
    prefix: str = ""  # "{user}" is replaced with the target user
    pace_ms: int = Field(default=4000, ge=0)


def _default_channel_kinds() -> dict[str, ChannelKindConfig]:
    return {
        name: ChannelKindConfig(prefix=prefix, pace_ms=pace_ms)
        for name, (prefix, pace_ms) in DEFAULT_CHANNEL_KINDS.items()
    }


class QueueConfig(BaseModel):
    """Outbound queue configuration."""
    channel_kinds: dict[str, ChannelKindConfig] = Field(default_factory=_default_channel_kinds)
    reply_timeout_ms: int = Field(default=5000, gt=0)

    def as_table(self) -> dict[str, tuple[str, int]]:
        return {name: (kind.prefix, kind.pace_ms) for name, kind in self.channel_kinds.items()}


class CommandsConfig(BaseModel):
    """Command handling configuration."""
    prefix: str = Field(default="@", min_length=1)
    notify_blacklisted: bool = True  # Tell blacklisted users why nothing happens
    cooldown_sweep_seconds: float = Field(default=300.0, gt=0)  # 5 minutes
    definitions_path: str = ""  # JSON command definitions (empty = built-ins only)
    builtins: bool = True


class ServerConfig(BaseModel):
    """Game server configuration."""
    host: str = "localhost"
    username: str = "MineBot"  # Bot's own name, never treated as a command sender
    dialect: str = "vanilla"  # "vanilla", "server" (by host) or a host name


class StoreConfig(BaseModel):
    """User store configuration."""
    path: str = ""  # JSON file; empty = in memory
    default_groups: list[str] = Field(default_factory=lambda: ["User"])


class Config(BaseSettings):
    """Root configuration for MineBot."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    model_config = SettingsConfigDict(
        env_prefix="MINEBOT_",
        env_nested_delimiter="__",
    )

    @property
    def store_path(self) -> Path | None:
        """Expanded user store path, or None for an in-memory store."""
        if not self.store.path:
            return None
        return Path(self.store.path).expanduser()

    @property
    def definitions_path(self) -> Path | None:
        if not self.commands.definitions_path:
            return None
        return Path(self.commands.definitions_path).expanduser()
