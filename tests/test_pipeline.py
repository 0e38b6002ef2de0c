"""
Tests for the command pipeline.

Tests:
- Each gate and gate order
- Handler errors are contained
- Cooldown recorded only after success
- Notifier called once per invocation
- Chat notifier texts
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from minebot.commands.cooldown import CooldownTracker
from minebot.commands.pipeline import ChatNotifier, CommandPipeline, GateFailure, InvocationResult
from minebot.commands.spec import CommandContext, CommandRegistry, CommandSpec
from minebot.users.store import UserContext


STEVE = UserContext(username="Steve", permissions=frozenset({"build.place", "user.say"}))
ADMIN = UserContext(username="Admin", permissions=frozenset({"admin.*"}))
BANNED = UserContext(username="Griefer", is_blacklisted=True, permissions=frozenset({"admin.*"}))


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def pipeline(clock, notifier):
    return CommandPipeline(
        cooldowns=CooldownTracker(clock=clock),
        notifier=notifier,
    )


@pytest.fixture
def registry():
    return CommandRegistry()


@pytest.fixture
def context(registry):
    return CommandContext(registry=registry)


def make(registry, handler=None, **fields):
    fields.setdefault("name", "build")
    handler = handler or AsyncMock(return_value="done")
    return registry.register(CommandSpec(**fields), handler)


class TestGates:
    """Tests for each gate."""

    @pytest.mark.asyncio
    async def test_success(self, pipeline, registry, context, notifier):
        command = make(registry, required_args=1, required_permission="build.place")

        result = await pipeline.execute(command, context, "local", STEVE, ["stone"])

        assert result.ok
        assert result.value == "done"
        command.handler.assert_awaited_once()
        ctx, channel, user, arg = command.handler.await_args.args
        assert ctx.spec is command.spec
        assert (channel, user, arg) == ("local", STEVE, "stone")
        notifier.assert_called_once_with(result, command.spec)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [[], ["one"]])
    async def test_invalid_arguments(self, pipeline, registry, context, args):
        command = make(registry, required_args=2)

        result = await pipeline.execute(command, context, "local", STEVE, args)

        assert result.failure is GateFailure.INVALID_ARGUMENTS
        command.handler.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel", ["global", "faction", "command", "unknown"])
    async def test_invalid_chat_type(self, pipeline, registry, context, channel):
        command = make(registry, allowed_channels={"local", "whisper"})

        result = await pipeline.execute(command, context, channel, ADMIN, [])

        assert result.failure is GateFailure.INVALID_CHAT_TYPE
        command.handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insufficient_permissions(self, pipeline, registry, context):
        command = make(registry, required_permission="build.remove")

        result = await pipeline.execute(command, context, "local", STEVE, [])

        assert result.failure is GateFailure.INSUFFICIENT_PERMISSIONS
        command.handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blacklisted_never_reaches_handler(self, pipeline, registry, context):
        command = make(registry, required_args=1, required_permission="admin.ban")

        result = await pipeline.execute(command, context, "local", BANNED, ["x"])

        assert result.failure is GateFailure.BLACKLISTED
        command.handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_active(self, pipeline, registry, context):
        command = make(registry, is_active=False)

        result = await pipeline.execute(command, context, "local", STEVE, [])

        assert result.failure is GateFailure.NOT_ACTIVE
        command.handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_on_cooldown(self, pipeline, registry, context, clock):
        command = make(registry, cooldown_ms=5000)

        first = await pipeline.execute(command, context, "local", STEVE, [])
        clock.advance(2.0)
        second = await pipeline.execute(command, context, "local", STEVE, [])

        assert first.ok
        assert second.failure is GateFailure.ON_COOLDOWN
        assert abs(second.remaining_ms - 3000) <= 5
        assert command.handler.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_cooldown_never_blocks(self, pipeline, registry, context):
        command = make(registry, cooldown_ms=0)

        for _ in range(10):
            result = await pipeline.execute(command, context, "local", STEVE, [])
            assert result.failure is not GateFailure.ON_COOLDOWN

        assert command.handler.await_count == 10


class TestGateOrder:
    """The first failing gate wins."""

    @pytest.mark.asyncio
    async def test_arity_before_channel(self, pipeline, registry, context):
        command = make(registry, required_args=1, allowed_channels={"whisper"})
        result = await pipeline.execute(command, context, "local", STEVE, [])
        assert result.failure is GateFailure.INVALID_ARGUMENTS

    @pytest.mark.asyncio
    async def test_channel_before_permission(self, pipeline, registry, context):
        command = make(registry, required_permission="admin.x", allowed_channels={"whisper"})
        result = await pipeline.execute(command, context, "local", STEVE, [])
        assert result.failure is GateFailure.INVALID_CHAT_TYPE

    @pytest.mark.asyncio
    async def test_permission_before_blacklist(self, pipeline, registry, context):
        user = UserContext(username="Nobody", is_blacklisted=True)
        command = make(registry, required_permission="admin.x")
        result = await pipeline.execute(command, context, "local", user, [])
        assert result.failure is GateFailure.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_blacklist_before_active(self, pipeline, registry, context):
        command = make(registry, is_active=False)
        result = await pipeline.execute(command, context, "local", BANNED, [])
        assert result.failure is GateFailure.BLACKLISTED

    @pytest.mark.asyncio
    async def test_active_before_cooldown(self, pipeline, registry, context):
        pipeline.cooldowns.record_use("build", "Steve", 5000)
        command = make(registry, is_active=False, cooldown_ms=5000)
        result = await pipeline.execute(command, context, "local", STEVE, [])
        assert result.failure is GateFailure.NOT_ACTIVE


class TestHandler:
    """Tests for handler execution."""

    @pytest.mark.asyncio
    async def test_handler_error_contained(self, pipeline, registry, context, notifier):
        async def broken(ctx, channel, user, *args):
            raise RuntimeError("boom")

        command = make(registry, handler=broken, cooldown_ms=5000)

        result = await pipeline.execute(command, context, "local", STEVE, [])

        assert result.failure is GateFailure.HANDLER_ERROR
        assert result.error == "boom"
        notifier.assert_called_once()
        # Failed runs do not start a cooldown
        assert pipeline.cooldowns.is_on_cooldown("build", "Steve", 5000) == (False, 0)

    @pytest.mark.asyncio
    async def test_sync_handler(self, pipeline, registry, context):
        def plain(ctx, channel, user, *args):
            return len(args)

        command = make(registry, handler=plain)
        result = await pipeline.execute(command, context, "local", STEVE, ["a", "b"])
        assert result.value == 2

    @pytest.mark.asyncio
    async def test_notifier_error_contained(self, registry, context):
        pipeline = CommandPipeline(notifier=MagicMock(side_effect=RuntimeError("notify failed")))
        command = make(registry)

        result = await pipeline.execute(command, context, "local", STEVE, [])
        assert result.ok

    @pytest.mark.asyncio
    async def test_async_notifier(self, registry, context):
        notifier = AsyncMock()
        pipeline = CommandPipeline(notifier=notifier)
        command = make(registry, is_active=False)

        result = await pipeline.execute(command, context, "local", STEVE, [])

        notifier.assert_awaited_once_with(result, command.spec)

    @pytest.mark.asyncio
    async def test_reload_during_execution_uses_old_spec(self, pipeline, registry, context):
        started = asyncio.Event()
        release = asyncio.Event()
        seen = []

        async def slow(ctx, channel, user, *args):
            started.set()
            await release.wait()
            seen.append(ctx.spec.description)

        command = make(registry, handler=slow, description="old")
        task = asyncio.create_task(pipeline.execute(command, context, "local", STEVE, []))
        await started.wait()

        registry.register(CommandSpec(name="build", description="new"), slow)
        release.set()
        result = await task

        assert result.ok
        assert seen == ["old"]

    @pytest.mark.asyncio
    async def test_different_users_interleave(self, pipeline, registry, context):
        gate = asyncio.Event()
        order = []

        async def waiter(ctx, channel, user, *args):
            order.append(f"start {user.username}")
            await gate.wait()
            order.append(f"end {user.username}")

        command = make(registry, handler=waiter, cooldown_ms=1000)
        first = asyncio.create_task(pipeline.execute(command, context, "local", STEVE, []))
        second = asyncio.create_task(pipeline.execute(command, context, "local", ADMIN, []))
        await asyncio.sleep(0.01)
        gate.set()

        results = await asyncio.gather(first, second)

        assert all(r.ok for r in results)
        assert order[:2] == ["start Steve", "start Admin"]

    @pytest.mark.asyncio
    async def test_cooldown_starts_after_success(self, pipeline, registry, context):
        """A second use while the first handler is still running is not blocked."""
        gate = asyncio.Event()

        async def waiter(ctx, channel, user, *args):
            await gate.wait()

        command = make(registry, handler=waiter, cooldown_ms=1000)
        first = asyncio.create_task(pipeline.execute(command, context, "local", STEVE, []))
        second = asyncio.create_task(pipeline.execute(command, context, "local", STEVE, []))
        await asyncio.sleep(0.01)
        gate.set()

        results = await asyncio.gather(first, second)
        assert all(r.ok for r in results)

        third = await pipeline.execute(command, context, "local", STEVE, [])
        assert third.failure is GateFailure.ON_COOLDOWN

    @pytest.mark.asyncio
    async def test_stats(self, pipeline, registry, context):
        command = make(registry, required_args=1)
        await pipeline.execute(command, context, "local", STEVE, [])
        await pipeline.execute(command, context, "local", STEVE, ["x"])

        stats = pipeline.get_stats()
        assert stats["outcomes"] == {"invalid_arguments": 1, "ok": 1}
        assert stats["total"] == 2


class TestChatNotifier:
    """Tests for the default chat notifier."""

    def result(self, failure, **kwargs):
        return InvocationResult(command="tp", channel="whisper", username="Steve", failure=failure, **kwargs)

    def test_sends_to_origin_channel(self):
        send = MagicMock()
        notifier = ChatNotifier(send)

        notifier(self.result(GateFailure.NOT_ACTIVE), CommandSpec(name="tp"))

        send.assert_called_once_with("whisper", "Command tp is not active", "Steve")

    def test_success_is_silent(self):
        send = MagicMock()
        ChatNotifier(send)(self.result(None), CommandSpec(name="tp"))
        send.assert_not_called()

    def test_blacklist_notice_configurable(self):
        send = MagicMock()
        spec = CommandSpec(name="tp")

        ChatNotifier(send, notify_blacklisted=False)(self.result(GateFailure.BLACKLISTED), spec)
        send.assert_not_called()

        ChatNotifier(send, notify_blacklisted=True)(self.result(GateFailure.BLACKLISTED), spec)
        send.assert_called_once()

    def test_cooldown_text_rounds_up(self):
        notifier = ChatNotifier(MagicMock())
        text = notifier.format(self.result(GateFailure.ON_COOLDOWN, remaining_ms=2100), CommandSpec(name="tp"))
        assert text == "Command tp is on cooldown, try again in 3s"

    def test_handler_error_text(self):
        notifier = ChatNotifier(MagicMock())
        text = notifier.format(self.result(GateFailure.HANDLER_ERROR, error="boom"), CommandSpec(name="tp"))
        assert text == "Error while executing command tp: boom"

    def test_message_override(self):
        notifier = ChatNotifier(MagicMock(), messages={GateFailure.NOT_ACTIVE: "{name}: off"})
        assert notifier.format(self.result(GateFailure.NOT_ACTIVE), CommandSpec(name="tp")) == "tp: off"
