"""
Built-in commands for MineBot.
"""

from minebot.commands.spec import CommandContext, CommandRegistry, CommandSpec
from minebot.queue.channel import ChatType
from minebot.users.store import UserContext

_ON = {"on", "true", "yes", "1", "add"}
_OFF = {"off", "false", "no", "0", "remove"}


async def handle_help(ctx: CommandContext, channel: str, user: UserContext, *args: str) -> None:
    prefix = ctx.extra.get("prefix", "@")
    topic = args[0] if args else ""
    ctx.reply(channel, user, ctx.registry.get_help(topic, prefix=prefix))


async def handle_ping(ctx: CommandContext, channel: str, user: UserContext, *args: str) -> str:
    ctx.reply(channel, user, "pong")
    return "pong"


async def handle_blacklist(ctx: CommandContext, channel: str, user: UserContext, *args: str) -> bool:
    target = args[0]
    mode = args[1].lower() if len(args) > 1 else "on"
    if mode in _ON:
        value = True
    elif mode in _OFF:
        value = False
    else:
        raise ValueError(f"expected on/off, got {mode!r}")

    if value and target == user.username:
        raise ValueError("you cannot blacklist yourself")

    await ctx.users.set_blacklist(target, value)
    state = "added to" if value else "removed from"
    ctx.reply(channel, user, f"{target} {state} the blacklist")
    return value


BUILTIN_SPECS: dict[str, CommandSpec] = {
    "help": CommandSpec(
        name="help",
        aliases=frozenset({"?", "h"}),
        description="Show available commands",
        usage="[command]",
    ),
    "ping": CommandSpec(
        name="ping",
        description="Check that the bot is alive",
        cooldown_ms=3000,
    ),
    "blacklist": CommandSpec(
        name="blacklist",
        aliases=frozenset({"bl"}),
        required_args=1,
        required_permission="admin.blacklist",
        allowed_channels=frozenset({ChatType.WHISPER, ChatType.FACTION, ChatType.LOCAL}),
        description="Block or unblock a player from using commands",
        usage="<player> [on|off]",
    ),
}

BUILTIN_HANDLERS = {
    "help": handle_help,
    "ping": handle_ping,
    "blacklist": handle_blacklist,
}


def register_builtin_commands(registry: CommandRegistry) -> None:
    """Register the default command set."""
    for name, spec in BUILTIN_SPECS.items():
        registry.register(spec, BUILTIN_HANDLERS[name])
