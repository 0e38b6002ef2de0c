"""
Tests for per-user cooldowns.

Tests:
- Remaining time reporting
- Zero cooldown
- Sweep keeps entries still inside their window
- Background sweep task lifecycle
"""

import asyncio

import pytest

from minebot.commands.cooldown import CooldownTracker


@pytest.fixture
def tracker(clock):
    return CooldownTracker(sweep_interval_seconds=300, clock=clock)


class TestIsOnCooldown:
    """Tests for is_on_cooldown / record_use."""

    def test_unused_command_available(self, tracker):
        assert tracker.is_on_cooldown("tp", "Steve", 5000) == (False, 0)

    def test_second_use_two_seconds_later(self, tracker, clock):
        tracker.record_use("tp", "Steve")
        clock.advance(2.0)

        on_cooldown, remaining = tracker.is_on_cooldown("tp", "Steve", 5000)

        assert on_cooldown is True
        assert abs(remaining - 3000) <= 5

    def test_available_after_window(self, tracker, clock):
        tracker.record_use("tp", "Steve")
        clock.advance(5.0)
        assert tracker.is_on_cooldown("tp", "Steve", 5000) == (False, 0)

    def test_zero_cooldown_never_blocks(self, tracker):
        for _ in range(20):
            tracker.record_use("ping", "Steve")
            assert tracker.is_on_cooldown("ping", "Steve", 0) == (False, 0)

    def test_per_user(self, tracker):
        tracker.record_use("tp", "Steve")
        assert tracker.is_on_cooldown("tp", "Alex", 5000) == (False, 0)
        assert tracker.is_on_cooldown("tp", "Steve", 5000)[0] is True

    def test_per_command(self, tracker):
        tracker.record_use("tp", "Steve")
        assert tracker.is_on_cooldown("home", "Steve", 5000) == (False, 0)

    def test_record_overwrites(self, tracker, clock):
        tracker.record_use("tp", "Steve")
        clock.advance(4.0)
        tracker.record_use("tp", "Steve")
        clock.advance(2.0)
        on_cooldown, remaining = tracker.is_on_cooldown("tp", "Steve", 5000)
        assert on_cooldown is True
        assert abs(remaining - 3000) <= 5

    def test_reset(self, tracker):
        tracker.record_use("tp", "Steve")
        tracker.reset("tp", "Steve")
        assert tracker.is_on_cooldown("tp", "Steve", 5000) == (False, 0)
        assert len(tracker) == 0


class TestSweep:
    """Tests for expiry sweeps."""

    def test_removes_expired(self, tracker, clock):
        tracker.record_use("tp", "Steve", cooldown_ms=5000)
        clock.advance(6.0)

        assert tracker.sweep() == 1
        assert len(tracker) == 0

    def test_keeps_entries_inside_window(self, tracker, clock):
        """A long cooldown survives sweeps even when older than the sweep interval."""
        tracker.record_use("daily", "Steve", cooldown_ms=24 * 3600 * 1000)
        tracker.record_use("tp", "Steve", cooldown_ms=5000)
        clock.advance(600.0)  # Two sweep intervals

        assert tracker.sweep() == 1
        assert len(tracker) == 1
        assert tracker.is_on_cooldown("daily", "Steve", 24 * 3600 * 1000)[0] is True

    def test_sweep_limit(self, tracker, clock):
        for i in range(10):
            tracker.record_use("tp", f"user{i}", cooldown_ms=1000)
        clock.advance(2.0)

        assert tracker.sweep(limit=4) == 4
        assert len(tracker) == 6
        assert tracker.sweep() == 6

    def test_forget_command(self, tracker):
        tracker.record_use("tp", "Steve", cooldown_ms=5000)
        tracker.forget_command("tp")
        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock):
        tracker = CooldownTracker(sweep_interval_seconds=0.02, clock=clock)
        tracker.record_use("tp", "Steve", cooldown_ms=1000)
        clock.advance(5.0)

        tracker.start()
        await asyncio.sleep(0.1)
        await tracker.stop()

        assert len(tracker) == 0
        assert tracker.get_stats()["total_swept"] == 1
        assert tracker.get_stats()["sweeping"] is False
