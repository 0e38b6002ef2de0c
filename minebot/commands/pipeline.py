"""
Command execution pipeline for MineBot.

An invocation passes through ordered gates. The first gate that fails stops
the invocation and is reported once through the notifier:

1. Arity: enough arguments -> else INVALID_ARGUMENTS
2. Channel: channel allowed -> else INVALID_CHAT_TYPE
3. Permission: user has the permission -> else INSUFFICIENT_PERMISSIONS
4. Blacklist: user is blacklisted -> BLACKLISTED
5. Activation: command is active -> else NOT_ACTIVE
6. Cooldown: not on cooldown -> else ON_COOLDOWN
7. Handler: runs; errors become HANDLER_ERROR

Nothing raised by a gate or a handler escapes `execute`.
"""

import dataclasses
import inspect
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Awaitable, Iterable

from loguru import logger

from minebot.commands.cooldown import CooldownTracker
from minebot.commands.spec import CommandContext, CommandSpec, RegisteredCommand
from minebot.security.permissions import PermissionResolver
from minebot.users.store import UserContext


class GateFailure(str, Enum):
    """Why an invocation was rejected."""
    INVALID_ARGUMENTS = "invalid_arguments"
    INVALID_CHAT_TYPE = "invalid_chat_type"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    BLACKLISTED = "blacklisted"
    NOT_ACTIVE = "not_active"
    ON_COOLDOWN = "on_cooldown"
    HANDLER_ERROR = "handler_error"


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one command invocation."""
    command: str
    channel: str
    username: str
    failure: GateFailure | None = None
    remaining_ms: int = 0  # ON_COOLDOWN
    error: str = ""  # HANDLER_ERROR
    value: Any = None  # Handler return value

    @property
    def ok(self) -> bool:
        return self.failure is None


# Called once per invocation with the result and the CommandSpec it ran against
Notifier = Callable[[InvocationResult, CommandSpec], Awaitable[None] | None]


class CommandPipeline:
    """
    Validates and executes command invocations.

    Invocations from different users or for different commands may interleave
    freely; the pipeline holds no per-invocation state.
    """

    def __init__(
        self,
        cooldowns: CooldownTracker | None = None,
        permissions: PermissionResolver | None = None,
        notifier: Notifier | None = None,
    ):
        self.cooldowns = cooldowns or CooldownTracker()
        self.permissions = permissions or PermissionResolver()
        self.notifier = notifier

        self._outcomes: Counter[str] = Counter()

    def check(
        self,
        spec: CommandSpec,
        channel: str,
        user: UserContext,
        args: list[str],
    ) -> InvocationResult | None:
        """Run gates 1-6. Returns the failure, or None if all gates pass."""

        def fail(failure: GateFailure, **kwargs: Any) -> InvocationResult:
            return InvocationResult(
                command=spec.name,
                channel=channel,
                username=user.username,
                failure=failure,
                **kwargs,
            )

        if len(args) < spec.required_args:
            return fail(GateFailure.INVALID_ARGUMENTS)

        if channel not in spec.allowed_channels:
            return fail(GateFailure.INVALID_CHAT_TYPE)

        if not self.permissions.has(user.permissions, spec.required_permission):
            return fail(GateFailure.INSUFFICIENT_PERMISSIONS)

        if user.is_blacklisted:
            return fail(GateFailure.BLACKLISTED)

        if not spec.is_active:
            return fail(GateFailure.NOT_ACTIVE)

        on_cooldown, remaining_ms = self.cooldowns.is_on_cooldown(
            spec.name, user.username, spec.cooldown_ms
        )
        if on_cooldown:
            return fail(GateFailure.ON_COOLDOWN, remaining_ms=remaining_ms)

        return None

    async def execute(
        self,
        command: RegisteredCommand,
        context: CommandContext,
        channel: str,
        user: UserContext,
        args: Iterable[str] = (),
    ) -> InvocationResult:
        """
        Run one invocation through all gates and the handler.

        Args:
            command: The command, as looked up in the registry.
            context: Services for the handler.
            channel: Channel kind the command arrived on.
            user: Snapshot of the invoking user.
            args: Tokenized arguments.

        Returns:
            The invocation result (also passed to the notifier).
        """
        # Pin the CommandSpec: a reload during the handler does not affect this run
        spec = command.spec
        args = list(args)

        result = self.check(spec, channel, user, args)
        if result is None:
            result = await self._run_handler(command, spec, context, channel, user, args)
        else:
            logger.debug(f"Command {spec.name} from {user.username} rejected: {result.failure.value}")

        self._outcomes[result.failure.value if result.failure else "ok"] += 1
        await self._notify(result, spec)
        return result

    async def _run_handler(
        self,
        command: RegisteredCommand,
        spec: CommandSpec,
        context: CommandContext,
        channel: str,
        user: UserContext,
        args: list[str],
    ) -> InvocationResult:
        logger.info(f"Executing command {spec.name} for {user.username} in {channel}")
        handler_context = dataclasses.replace(context, spec=spec)

        try:
            value = command.handler(handler_context, channel, user, *args)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.exception(f"Command {spec.name} failed: {e}")
            return InvocationResult(
                command=spec.name,
                channel=channel,
                username=user.username,
                failure=GateFailure.HANDLER_ERROR,
                error=str(e) or type(e).__name__,
            )

        if spec.cooldown_ms > 0:
            self.cooldowns.record_use(spec.name, user.username, spec.cooldown_ms)

        return InvocationResult(
            command=spec.name,
            channel=channel,
            username=user.username,
            value=value,
        )

    async def _notify(self, result: InvocationResult, spec: CommandSpec) -> None:
        if self.notifier is None:
            return
        try:
            outcome = self.notifier(result, spec)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Notifier error for {spec.name}: {e}")

    def get_stats(self) -> dict[str, Any]:
        return {
            "outcomes": dict(self._outcomes),
            "total": sum(self._outcomes.values()),
        }


# Default user-facing texts, formatted with {name} and {remaining_s}/{error}
DEFAULT_MESSAGES: dict[GateFailure, str] = {
    GateFailure.INVALID_ARGUMENTS: "Not enough arguments for command {name}",
    GateFailure.INVALID_CHAT_TYPE: "Command {name} is not available in this chat",
    GateFailure.INSUFFICIENT_PERMISSIONS: "You do not have permission to use command {name}",
    GateFailure.BLACKLISTED: "You are blacklisted and cannot use commands.",
    GateFailure.NOT_ACTIVE: "Command {name} is not active",
    GateFailure.ON_COOLDOWN: "Command {name} is on cooldown, try again in {remaining_s}s",
    GateFailure.HANDLER_ERROR: "Error while executing command {name}: {error}",
}


class ChatNotifier:
    """
    Notifier that answers rejected invocations in chat.

    Replies go out on the channel the command came from, addressed to the
    invoking user. Successful invocations produce no message; handlers reply
    themselves.
    """

    def __init__(
        self,
        send: Callable[[str, str, str], None],
        notify_blacklisted: bool = True,
        messages: dict[GateFailure, str] | None = None,
    ):
        """
        Args:
            send: Function(channel, text, username) that enqueues a reply.
            notify_blacklisted: Tell blacklisted users they are blacklisted.
            messages: Overrides for the default texts.
        """
        self._send = send
        self.notify_blacklisted = notify_blacklisted
        self.messages = {**DEFAULT_MESSAGES, **(messages or {})}

    def format(self, result: InvocationResult, spec: CommandSpec) -> str | None:
        if result.failure is None:
            return None
        if result.failure is GateFailure.BLACKLISTED and not self.notify_blacklisted:
            return None
        template = self.messages.get(result.failure)
        if not template:
            return None
        remaining_s = max(1, -(-result.remaining_ms // 1000)) if result.remaining_ms else 0
        return template.format(
            name=spec.name,
            remaining_s=remaining_s,
            remaining_ms=result.remaining_ms,
            error=result.error,
        )

    def __call__(self, result: InvocationResult, spec: CommandSpec) -> None:
        text = self.format(result, spec)
        if text:
            self._send(result.channel, text, result.username)
