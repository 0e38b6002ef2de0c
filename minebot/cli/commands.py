"""CLI commands for MineBot."""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from minebot import __version__, __logo__

app = typer.Typer(
    name="minebot",
    help=f"{__logo__} MineBot - chat command bot for game servers",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} MineBot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """MineBot - chat command bot for game servers."""
    pass


def _load(config_path: Path | None):
    from minebot.config.loader import load_config
    return load_config(config_path)


@app.command()
def onboard(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Create a default MineBot configuration."""
    from minebot.config.loader import get_config_path, save_config
    from minebot.config.schema import Config

    path = config_path or get_config_path()

    if path.exists():
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config(), path)
    console.print(f"[green]✓[/green] Created config at {path}")
    console.print("\nNext steps:")
    console.print("  1. Set [cyan]server.host[/cyan] and [cyan]server.dialect[/cyan]")
    console.print("  2. Try commands locally: [cyan]minebot run[/cyan], then type [cyan]<Steve> @help[/cyan]")


@app.command()
def run(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Debug logging"),
):
    """Run the bot on the console: stdin lines are chat, sends are printed."""
    from minebot.bot import Bot
    from minebot.transport.base import ConsoleTransport

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")

    config = _load(config_path)
    transport = ConsoleTransport()
    bot = Bot(transport, config)

    console.print(f"{__logo__} MineBot on console ({config.server.dialect} dialect, prefix {config.commands.prefix!r})")
    console.print("[dim]Ctrl-D to quit[/dim]")

    async def main_loop():
        await bot.start()
        try:
            await transport.run()
            await bot.outbound.join()
        finally:
            await bot.stop()

    try:
        asyncio.run(main_loop())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


@app.command()
def channels(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show outbound channel kinds and their pacing."""
    config = _load(config_path)

    table = Table(title="Channel Kinds")
    table.add_column("Kind", style="cyan")
    table.add_column("Prefix", style="yellow")
    table.add_column("Pace (ms)", style="green", justify="right")

    for name, kind in config.queue.channel_kinds.items():
        table.add_row(name, repr(kind.prefix), str(kind.pace_ms))

    console.print(table)


@app.command()
def commands(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List registered commands."""
    from minebot.bot import Bot
    from minebot.transport.base import ConsoleTransport

    config = _load(config_path)
    bot = Bot(ConsoleTransport(), config)
    bot.reload_commands()

    table = Table(title="Commands")
    table.add_column("Command", style="cyan")
    table.add_column("Aliases")
    table.add_column("Args", justify="right")
    table.add_column("Permission", style="yellow")
    table.add_column("Channels")
    table.add_column("Cooldown (ms)", justify="right")
    table.add_column("Active", style="green")

    prefix = config.commands.prefix
    for spec in bot.registry.list_commands():
        table.add_row(
            f"{prefix}{spec.name}",
            ", ".join(sorted(spec.aliases)),
            str(spec.required_args),
            spec.required_permission or "-",
            ", ".join(sorted(spec.allowed_channels)),
            str(spec.cooldown_ms),
            "✓" if spec.is_active else "✗",
        )

    console.print(table)


if __name__ == "__main__":
    app()
