"""
Inbound chat classification.

Supports:
- Vanilla-style chat lines (`<Steve> hi`, `Steve whispers to you: hi`)
- Server dialects with local/global markers, private messages and faction
  chat, where the real sender name is carried in the chat component's click
  event rather than the visible text
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from loguru import logger

from minebot.queue.channel import ChatType
from minebot.transport.base import InboundEvent


@dataclass(frozen=True)
class ClassifiedMessage:
    """A chat message attributed to a channel and sender."""
    channel: str
    sender: str
    text: str


class Classifier(ABC):
    """Turns raw events into classified messages."""

    @abstractmethod
    def classify(self, raw_text: str, event: InboundEvent | None = None) -> ClassifiedMessage | None:
        """Return the classified message, or None for unrecognized events."""
        pass


def _username_from_click(click_event: Any) -> str | None:
    # suggest_command values look like "/msg <name> "
    if not isinstance(click_event, dict):
        return None
    if click_event.get("action") != "suggest_command":
        return None
    parts = str(click_event.get("value", "")).split()
    if len(parts) > 1:
        return parts[1]
    return None


def extract_click_username(component: Any) -> str | None:
    """
    Find the sender name in a chat component tree.

    Walks the tree depth-first (node first, then its `extra` children in
    order) and returns the first name found.
    """
    if not isinstance(component, dict):
        return None

    username = _username_from_click(component.get("clickEvent"))
    if username:
        return username

    for part in component.get("extra") or ():
        username = extract_click_username(part)
        if username:
            return username
    return None


class PatternClassifier(Classifier):
    """
    Classifier driven by an ordered list of (channel, regex) rules.

    Each regex must define `sender` and `text` named groups. The first rule
    that matches wins.
    """

    VANILLA_RULES: list[tuple[str, str]] = [
        (ChatType.WHISPER, r"^(?P<sender>\w{1,16}) whispers(?: to you)?: (?P<text>.+)$"),
        (ChatType.LOCAL, r"^<(?P<sender>\w{1,16})> (?P<text>.+)$"),
    ]

    def __init__(self, rules: list[tuple[str, str | re.Pattern[str]]] | None = None):
        rules = self.VANILLA_RULES if rules is None else rules
        self.rules = [
            (channel, p if isinstance(p, re.Pattern) else re.compile(p))
            for channel, p in rules
        ]

    def classify(self, raw_text: str, event: InboundEvent | None = None) -> ClassifiedMessage | None:
        text = raw_text.strip()
        for channel, pattern in self.rules:
            m = pattern.match(text)
            if m:
                return ClassifiedMessage(
                    channel=channel,
                    sender=m.group("sender"),
                    text=m.group("text").strip(),
                )
        return None


@dataclass(frozen=True)
class ServerDialect:
    """
    Chat format of one server family.

    `private_pattern` needs `sender` and `text` named groups. With
    `special_private_check` the pattern is applied to the uncleaned text and
    only when the line contains "я]".
    """
    arrow_char: str
    private_pattern: str
    special_private_check: bool = False
    local_marker: str = "[ʟ]"
    global_marker: str = "[ɢ]"
    faction_pattern: str = r"^КЛАН:\s*(?P<prefix>.+?):\s*(?P<text>.*)"


_ARROW_PRIVATE = r"\[(?P<sender>.*?)\s+->\s+я\]\s+(?P<text>.+)"

SERVER_DIALECTS: dict[str, ServerDialect] = {
    "mc.mineblaze.net": ServerDialect(arrow_char="→", private_pattern=_ARROW_PRIVATE),
    "mc.masedworld.net": ServerDialect(arrow_char="⇨", private_pattern=_ARROW_PRIVATE),
    "mc.cheatmine.net": ServerDialect(
        arrow_char="⇨",
        private_pattern=r"\[\*\] \[(?:.*?)\s+(?P<sender>[^\[\]\s]+) -> я\] (?P<text>.+)",
        special_private_check=True,
    ),
}

_HEART = re.compile(r"❤\s?")


class DialectClassifier(Classifier):
    """Classifier for servers described by a ServerDialect."""

    def __init__(self, dialect: ServerDialect):
        self.dialect = dialect
        self._private = re.compile(dialect.private_pattern)
        self._faction = re.compile(dialect.faction_pattern)

    def _sender(self, event: InboundEvent | None, fallback: str | None = None) -> str | None:
        payload = event.payload if event is not None else None
        return extract_click_username(payload) or fallback

    def classify(self, raw_text: str, event: InboundEvent | None = None) -> ClassifiedMessage | None:
        d = self.dialect
        cleaned = _HEART.sub("", raw_text, count=1).strip()

        # Private messages
        if d.special_private_check:
            if "я]" in raw_text:
                m = self._private.search(raw_text)
                if m:
                    return self._message(ChatType.WHISPER, self._sender(event, m.group("sender")), m.group("text"))
        else:
            m = self._private.search(cleaned)
            if m:
                return self._message(ChatType.WHISPER, self._sender(event, m.group("sender")), m.group("text"))

        # Local / global: text follows the arrow, sender only from click event
        for marker, channel in ((d.local_marker, ChatType.LOCAL), (d.global_marker, ChatType.GLOBAL)):
            if marker in cleaned:
                index = cleaned.find(d.arrow_char)
                if index == -1:
                    return None
                return self._message(channel, self._sender(event), cleaned[index + len(d.arrow_char):])

        # Faction chat: the sender is the last word before the colon
        m = self._faction.match(cleaned)
        if m:
            words = m.group("prefix").split()
            return self._message(ChatType.FACTION, words[-1] if words else None, m.group("text"))

        return None

    @staticmethod
    def _message(channel: str, sender: str | None, text: str) -> ClassifiedMessage | None:
        sender = (sender or "").strip()
        if not sender:
            return None
        return ClassifiedMessage(channel=channel, sender=sender, text=text.strip())


def get_classifier(dialect: str = "vanilla", host: str = "") -> Classifier | None:
    """
    Pick a classifier.

    Args:
        dialect: "vanilla", "server" (look up `host`), or a server host name.
        host: Server host, used when dialect is "server".

    Returns:
        A classifier, or None if the server is unknown.
    """
    if dialect == "vanilla":
        return PatternClassifier()

    key = host if dialect == "server" else dialect
    server = SERVER_DIALECTS.get(key)
    if server is None:
        logger.warning(f"Unknown server dialect: {key}")
        return None
    return DialectClassifier(server)
