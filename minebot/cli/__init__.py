"""CLI module for MineBot."""
