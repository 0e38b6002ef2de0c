"""
Pytest configuration and shared fixtures for MineBot tests.
"""

import asyncio
import sys
import time
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from minebot.config.schema import ChannelKindConfig, Config, QueueConfig
from minebot.queue.channel import ChannelKindTable
from minebot.transport.base import InboundEvent, Transport
from minebot.users.store import InMemoryUserStore


class FakeTransport(Transport):
    """Transport that records sent lines and can fail on chosen lines."""

    name = "fake"

    def __init__(self, fail_lines: set[str] | None = None):
        super().__init__()
        self.sent: list[str] = []
        self.times: list[float] = []
        self.fail_lines = fail_lines or set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, raw_line: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if raw_line in self.fail_lines:
                raise ConnectionError("transport down")
            self.sent.append(raw_line)
            self.times.append(time.monotonic())
        finally:
            self.in_flight -= 1

    async def say(self, text: str, payload=None) -> None:
        """Simulate an inbound chat line."""
        await self.emit(InboundEvent(raw_text=text, source_tag="test", payload=payload))


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Zero pacing so queue tests run fast
FAST_KINDS = {
    "local": ("", 0),
    "global": ("!", 0),
    "whisper": ("/msg {user} ", 0),
    "faction": ("/cc ", 0),
    "command": ("", 0),
}


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fast_kinds():
    return ChannelKindTable(FAST_KINDS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """In-memory store with an admin and a moderator group."""
    return InMemoryUserStore(
        groups={
            "User": ["user.say"],
            "Admin": ["admin.*"],
            "Builder": ["build.place"],
        },
        default_groups=["User"],
    )


@pytest.fixture
def fast_config():
    """Config with zero pacing and the vanilla dialect."""
    return Config(
        queue=QueueConfig(
            channel_kinds={
                name: ChannelKindConfig(prefix=prefix, pace_ms=pace)
                for name, (prefix, pace) in FAST_KINDS.items()
            },
            reply_timeout_ms=500,
        ),
    )


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    config = tmp_path / "config"
    config.mkdir()
    return config
