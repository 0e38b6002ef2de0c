"""Entry point for `python -m minebot`."""

from minebot.cli.commands import app

if __name__ == "__main__":
    app()
