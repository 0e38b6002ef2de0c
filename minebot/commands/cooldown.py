"""
Per-user command cooldowns.

Each (command, user) pair remembers when the command last succeeded. A
background task sweeps entries whose cooldown has elapsed so the map stays
bounded.
"""

import asyncio
import time
from typing import Any, Callable

from loguru import logger


class CooldownTracker:
    """
    Tracks last-use timestamps per command and user.

    The sweep needs each command's cooldown. It is remembered from the most
    recent `is_on_cooldown`/`record_use` call for that command.
    """

    # Entries removed per sweep before yielding to the event loop
    SWEEP_BATCH = 500

    def __init__(
        self,
        sweep_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock

        # command -> {username -> last use (clock seconds)}
        self._last_use: dict[str, dict[str, float]] = {}
        # command -> cooldown in ms
        self._cooldowns: dict[str, int] = {}

        self._sweep_task: asyncio.Task | None = None
        self._total_swept = 0

    def is_on_cooldown(self, command: str, username: str, cooldown_ms: int) -> tuple[bool, int]:
        """
        Check a user's cooldown for a command.

        Returns:
            (False, 0) when available, (True, remaining_ms) otherwise.
        """
        self._cooldowns[command] = cooldown_ms
        if cooldown_ms <= 0:
            return False, 0

        last = self._last_use.get(command, {}).get(username)
        if last is None:
            return False, 0

        elapsed_ms = (self._clock() - last) * 1000
        if elapsed_ms >= cooldown_ms:
            return False, 0
        return True, int(round(cooldown_ms - elapsed_ms))

    def record_use(self, command: str, username: str, cooldown_ms: int | None = None) -> None:
        """Mark the command as just used by this user."""
        if cooldown_ms is not None:
            self._cooldowns[command] = cooldown_ms
        self._last_use.setdefault(command, {})[username] = self._clock()

    def reset(self, command: str, username: str | None = None) -> None:
        """Clear one user's cooldown, or the whole command's when username is None."""
        if username is None:
            self._last_use.pop(command, None)
            return
        users = self._last_use.get(command)
        if users is not None:
            users.pop(username, None)
            if not users:
                del self._last_use[command]

    def forget_command(self, command: str) -> None:
        """Drop all state for a command (e.g. after it is unregistered)."""
        self._last_use.pop(command, None)
        self._cooldowns.pop(command, None)

    def sweep(self, limit: int | None = None) -> int:
        """
        Remove entries whose cooldown window has elapsed.

        Args:
            limit: Stop after removing this many entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0

        for command in list(self._last_use):
            cooldown_s = self._cooldowns.get(command, 0) / 1000
            users = self._last_use[command]
            expired = [u for u, ts in users.items() if now - ts >= cooldown_s]
            for username in expired:
                if limit is not None and removed >= limit:
                    break
                del users[username]
                removed += 1
            if not users:
                del self._last_use[command]
            if limit is not None and removed >= limit:
                break

        self._total_swept += removed
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                # Bounded batches so a large map never stalls the loop
                while self.sweep(limit=self.SWEEP_BATCH) == self.SWEEP_BATCH:
                    await asyncio.sleep(0)
            except Exception as e:
                logger.error(f"Cooldown sweep error: {e}")

    def start(self) -> None:
        """Start the periodic sweep. Requires a running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
            logger.debug(f"Cooldown sweep every {self.sweep_interval_seconds}s")

    async def stop(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.wait({self._sweep_task})
            self._sweep_task = None

    def __len__(self) -> int:
        return sum(len(users) for users in self._last_use.values())

    def get_stats(self) -> dict[str, Any]:
        return {
            "entries": len(self),
            "commands": len(self._last_use),
            "total_swept": self._total_swept,
            "sweeping": self._sweep_task is not None,
        }
