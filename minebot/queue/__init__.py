"""
Outbound message queue for MineBot.

Provides:
- Per channel kind framing and pacing
- A single global FIFO drained by one worker
- Command/reply correlation over the inbound event stream
"""

from minebot.queue.channel import (
    ChatType,
    ChannelKind,
    ChannelKindTable,
    OutboundMessage,
    PendingReply,
    CorrelatedReply,
    RateLimitedChannel,
    DEFAULT_CHANNEL_KINDS,
)

__all__ = [
    "ChatType",
    "ChannelKind",
    "ChannelKindTable",
    "OutboundMessage",
    "PendingReply",
    "CorrelatedReply",
    "RateLimitedChannel",
    "DEFAULT_CHANNEL_KINDS",
]
