"""
Rate limited outbound channel for MineBot.

Game servers kick clients that chat too fast, so every outbound line goes
through one FIFO that is drained by a single worker. After each line the
worker waits for the pace of the message's channel kind.

The channel also correlates commands with replies: `send_and_await_reply`
sends a command and waits for the first inbound event matching one of the
given patterns.
"""

import asyncio
import re
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable

from loguru import logger

from minebot.errors import ReplyTimeout, UnknownChannelKind
from minebot.transport.base import InboundEvent, Transport


class ChatType:
    """Built-in channel kind names."""
    LOCAL = "local"
    GLOBAL = "global"
    WHISPER = "whisper"
    FACTION = "faction"
    COMMAND = "command"


@dataclass
class ChannelKind:
    """
    A class of outbound destination.

    `prefix` is prepended to every line; "{user}" inside it is replaced with
    the message's target user (e.g. "/msg {user} " for whispers).
    """
    name: str
    prefix: str = ""
    pace_ms: int = 4000

    def frame(self, line: str, target_user: str = "") -> str:
        """Render a body line as a raw chat line."""
        return self.prefix.replace("{user}", target_user) + line


# name -> (prefix, pace_ms)
DEFAULT_CHANNEL_KINDS: dict[str, tuple[str, int]] = {
    ChatType.LOCAL: ("", 4000),
    ChatType.GLOBAL: ("!", 4000),
    ChatType.WHISPER: ("/msg {user} ", 4000),
    ChatType.FACTION: ("/cc ", 355),
    ChatType.COMMAND: ("", 400),
}


class ChannelKindTable:
    """Registry of channel kinds. Kinds can be added and re-paced at runtime."""

    def __init__(self, kinds: dict[str, tuple[str, int]] | None = None):
        self._kinds: dict[str, ChannelKind] = {}
        source = DEFAULT_CHANNEL_KINDS if kinds is None else kinds
        for name, (prefix, pace_ms) in source.items():
            self.add_channel_kind(name, prefix, pace_ms)

    def add_channel_kind(self, name: str, prefix: str = "", pace_ms: int = 4000) -> ChannelKind:
        """Register a channel kind, replacing any kind with the same name."""
        if pace_ms < 0:
            raise ValueError(f"pace_ms must be >= 0, got {pace_ms}")
        kind = ChannelKind(name=name, prefix=prefix, pace_ms=pace_ms)
        self._kinds[name] = kind
        return kind

    def set_pace(self, name: str, pace_ms: int) -> None:
        """Change the pace of an existing kind."""
        if pace_ms < 0:
            raise ValueError(f"pace_ms must be >= 0, got {pace_ms}")
        self.get(name).pace_ms = pace_ms

    def get(self, name: str) -> ChannelKind:
        kind = self._kinds.get(name)
        if kind is None:
            raise UnknownChannelKind(name)
        return kind

    def names(self) -> list[str]:
        return list(self._kinds)

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def __iter__(self):
        return iter(self._kinds.values())

    def __len__(self) -> int:
        return len(self._kinds)


@dataclass(frozen=True)
class OutboundMessage:
    """
    A message waiting to be sent.

    `body_lines` accepts a single string or any iterable of strings and is
    stored as a tuple.
    """
    channel_kind: str
    body_lines: tuple[str, ...]
    target_user: str = ""
    pace_override_ms: int | None = None

    def __post_init__(self):
        lines = self.body_lines
        if isinstance(lines, str):
            lines = (lines,)
        object.__setattr__(self, "body_lines", tuple(lines))


@dataclass(frozen=True)
class CorrelatedReply:
    """The inbound event that satisfied a pending reply."""
    event: InboundEvent
    match: re.Match
    pattern: re.Pattern[str]

    @property
    def text(self) -> str:
        return self.event.raw_text


@dataclass
class PendingReply:
    """A registered wait for an inbound event matching one of `patterns`."""
    id: str
    command: str
    patterns: list[re.Pattern[str]]
    deadline: float  # loop time
    future: asyncio.Future
    listener: Any = None
    timer: asyncio.TimerHandle | None = None

    def match(self, text: str) -> tuple[re.Match, re.Pattern[str]] | None:
        """Test patterns in order; the first one that matches wins."""
        for pattern in self.patterns:
            m = pattern.search(text)
            if m:
                return m, pattern
        return None


def compile_patterns(patterns: str | re.Pattern[str] | Iterable[str | re.Pattern[str]]) -> list[re.Pattern[str]]:
    """Normalize a pattern or list of patterns to compiled regexes."""
    if isinstance(patterns, (str, re.Pattern)):
        patterns = [patterns]
    return [p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns]


class RateLimitedChannel:
    """
    Single FIFO of outbound messages with per channel kind pacing.

    Only one drain runs at a time; the `_sending` flag is the guard. Execution
    is cooperative, so a flag is enough.
    """

    def __init__(
        self,
        transport: Transport,
        kinds: ChannelKindTable | None = None,
        default_reply_timeout_ms: int = 5000,
    ):
        self.transport = transport
        self.kinds = kinds or ChannelKindTable()
        self.default_reply_timeout_ms = default_reply_timeout_ms

        self._queue: deque[OutboundMessage] = deque()
        self._sending = False
        self._worker: asyncio.Task | None = None

        # Correlated replies: id -> PendingReply
        self._pending: dict[str, PendingReply] = {}

        # Stats
        self._total_enqueued = 0
        self._total_sent = 0
        self._total_failed = 0
        self._total_dropped = 0
        self._replies_matched = 0
        self._replies_timed_out = 0
        self._reply_teardowns = 0

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, message: OutboundMessage) -> None:
        """Append a message to the tail of the queue and wake the worker."""
        self._queue.append(message)
        self._total_enqueued += 1
        logger.debug(f"Enqueued {message.channel_kind} message: {list(message.body_lines)}")

        if not self._sending:
            self._wake()

    def send(
        self,
        channel_kind: str,
        lines: str | Iterable[str],
        target_user: str = "",
        pace_override_ms: int | None = None,
    ) -> None:
        """Shortcut for enqueue(OutboundMessage(...))."""
        self.enqueue(OutboundMessage(
            channel_kind=channel_kind,
            body_lines=lines,
            target_user=target_user,
            pace_override_ms=pace_override_ms,
        ))

    def _wake(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the next enqueue inside a loop drains everything
            logger.debug("No running event loop, message stays queued")
            return

        self._sending = True
        self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                message = self._queue.popleft()
                await self._send_message(message)
        finally:
            self._sending = False
            self._worker = None

    async def _send_message(self, message: OutboundMessage) -> None:
        try:
            kind = self.kinds.get(message.channel_kind)
        except UnknownChannelKind as e:
            logger.warning(f"Dropping message: {e}")
            self._total_dropped += 1
            return

        delay_ms = message.pace_override_ms
        if delay_ms is None:
            delay_ms = kind.pace_ms

        for line in message.body_lines:
            raw = kind.frame(line, message.target_user)
            logger.debug(f"Sending {kind.name} line to {message.target_user or '-'}: {raw}")
            try:
                await self.transport.send(raw)
                self._total_sent += 1
            except Exception as e:
                logger.error(f"Failed to send line {raw!r}: {e}")
                self._total_failed += 1

            await asyncio.sleep(delay_ms / 1000)

    def resume(self) -> None:
        """Start draining messages that were queued while no loop was running."""
        if self._queue and not self._sending:
            self._wake()

    async def join(self) -> None:
        """Wait until the queue is drained."""
        self.resume()
        while self._worker is not None:
            await asyncio.wait({self._worker})

    # ------------------------------------------------------------------
    # Reply correlation
    # ------------------------------------------------------------------

    def expect_reply(
        self,
        patterns: str | re.Pattern[str] | Iterable[str | re.Pattern[str]],
        timeout_ms: int | None = None,
        command: str = "",
    ) -> PendingReply:
        """
        Start waiting for an inbound event matching any of `patterns`.

        The returned PendingReply's future resolves with a CorrelatedReply, or
        fails with ReplyTimeout. Listener and timer are removed as soon as the
        future is settled either way, or cancelled.
        """
        loop = asyncio.get_running_loop()
        timeout_ms = self.default_reply_timeout_ms if timeout_ms is None else timeout_ms
        compiled = compile_patterns(patterns)

        pending = PendingReply(
            id=uuid.uuid4().hex[:12],
            command=command,
            patterns=compiled,
            deadline=loop.time() + timeout_ms / 1000,
            future=loop.create_future(),
        )

        def on_event(event: InboundEvent) -> None:
            if pending.future.done():
                return
            found = pending.match(event.raw_text)
            if found is None:
                return
            m, pattern = found
            self._replies_matched += 1
            self._dispose(pending)
            pending.future.set_result(CorrelatedReply(event=event, match=m, pattern=pattern))

        def on_timeout() -> None:
            if pending.future.done():
                return
            self._replies_timed_out += 1
            self._dispose(pending)
            pending.future.set_exception(ReplyTimeout(command, timeout_ms))

        pending.listener = on_event
        self._pending[pending.id] = pending
        self.transport.subscribe(on_event)
        pending.timer = loop.call_later(timeout_ms / 1000, on_timeout)

        # Covers cancellation of the awaiting task
        pending.future.add_done_callback(lambda _: self._dispose(pending))

        return pending

    async def send_and_await_reply(
        self,
        command_text: str,
        patterns: str | re.Pattern[str] | Iterable[str | re.Pattern[str]],
        timeout_ms: int | None = None,
    ) -> CorrelatedReply:
        """
        Send a server command and wait for the matching reply.

        Args:
            command_text: Raw command line, sent as a "command" kind message.
            patterns: Regex(es) tested against inbound text, in order.
            timeout_ms: How long to wait; defaults to the channel default.

        Returns:
            The first matching inbound event with its match object.

        Raises:
            ReplyTimeout: Nothing matched in time.
        """
        logger.debug(f"Sending command and awaiting reply: {command_text}")
        pending = self.expect_reply(patterns, timeout_ms, command=command_text)
        self.enqueue(OutboundMessage(ChatType.COMMAND, command_text))
        return await pending.future

    def cancel_reply(self, reply_id: str) -> bool:
        """Stop waiting for a pending reply. Returns False if it is already settled."""
        pending = self._pending.get(reply_id)
        if pending is None:
            return False
        self._dispose(pending)
        pending.future.cancel()
        return True

    def _dispose(self, pending: PendingReply) -> None:
        """Remove the listener and timer of a pending reply. Idempotent."""
        if self._pending.pop(pending.id, None) is None:
            return
        self.transport.unsubscribe(pending.listener)
        if pending.timer is not None:
            pending.timer.cancel()
        self._reply_teardowns += 1

    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel the worker and every pending reply."""
        for reply_id in list(self._pending):
            self.cancel_reply(reply_id)

        worker = self._worker
        if worker is not None:
            worker.cancel()
            await asyncio.wait({worker})
        # A worker cancelled before its first step never reaches its finally
        self._sending = False
        self._worker = None
        self._queue.clear()

    @property
    def size(self) -> int:
        """Messages waiting (not counting the one being sent)."""
        return len(self._queue)

    @property
    def is_sending(self) -> bool:
        return self._sending

    @property
    def pending_replies(self) -> int:
        return len(self._pending)

    def get_stats(self) -> dict[str, Any]:
        """Get queue statistics."""
        return {
            "queue_size": self.size,
            "sending": self._sending,
            "total_enqueued": self._total_enqueued,
            "total_sent": self._total_sent,
            "total_failed": self._total_failed,
            "total_dropped": self._total_dropped,
            "pending_replies": len(self._pending),
            "replies_matched": self._replies_matched,
            "replies_timed_out": self._replies_timed_out,
            "reply_teardowns": self._reply_teardowns,
        }
