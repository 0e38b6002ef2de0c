"""
Command parsing for MineBot.

Chat commands look like `@name arg1 "quoted arg" arg3`.
"""

from dataclasses import dataclass, field

DEFAULT_PREFIX = "@"


@dataclass
class ParsedCommand:
    """A command extracted from a chat message."""
    name: str
    arguments: list[str] = field(default_factory=list)
    raw: str = ""

    @property
    def arg(self) -> str:
        """Get first argument or empty string."""
        return self.arguments[0] if self.arguments else ""


def tokenize_arguments(text: str) -> list[str]:
    """
    Split an argument string on spaces, keeping double-quoted parts together.

    Quotes are stripped. A quote left open at the end still yields whatever
    was collected after it.

    Examples:
        'a b' -> ['a', 'b']
        'say "hello world" now' -> ['say', 'hello world', 'now']
        'x "open ended' -> ['x', 'open ended']
    """
    args: list[str] = []
    current = ""
    in_quotes = False

    for char in text:
        if char == '"':
            if in_quotes:
                args.append(current.strip())
                current = ""
            in_quotes = not in_quotes
            continue

        if char == " " and not in_quotes:
            if current:
                args.append(current.strip())
                current = ""
            continue

        current += char

    if current:
        args.append(current.strip())

    return args


def parse_command(text: str, prefix: str = DEFAULT_PREFIX) -> ParsedCommand | None:
    """
    Parse a command from a chat message.

    Args:
        text: Message text as sent by the player.
        prefix: Command prefix.

    Returns:
        ParsedCommand with a lower-cased name, or None if the text is not a
        command.
    """
    text = text.strip()
    if not prefix or not text.startswith(prefix):
        return None

    body = text[len(prefix):]
    name, _, rest = body.partition(" ")
    if not name:
        return None

    return ParsedCommand(
        name=name.lower(),
        arguments=tokenize_arguments(rest),
        raw=text,
    )
