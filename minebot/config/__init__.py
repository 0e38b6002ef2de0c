"""Configuration for MineBot."""

from minebot.config.schema import Config
from minebot.config.loader import load_config, save_config, get_config_path

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
