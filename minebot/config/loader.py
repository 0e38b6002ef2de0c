"""Configuration loading and saving."""

import json
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from minebot.config.schema import Config


def get_config_path() -> Path:
    """Get the default config file path."""
    return Path.home() / ".minebot" / "config.json"


def _to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _to_camel(name: str) -> str:
    first, *rest = name.split("_")
    return first + "".join(word.capitalize() for word in rest)


# Children of these keys are user-chosen names and keep their spelling
_NAME_MAPS = {"channel_kinds"}


def _convert(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, dict):
        converted = {}
        for key, value in data.items():
            is_name_map = _to_snake(key) in _NAME_MAPS and isinstance(value, dict)
            key = rename(key)
            if is_name_map:
                converted[key] = {name: _convert(v, rename) for name, v in value.items()}
            else:
                converted[key] = _convert(value, rename)
        return converted
    if isinstance(data, list):
        return [_convert(v, rename) for v in data]
    return data


def convert_keys(data: Any) -> Any:
    """Recursively convert camelCase keys to snake_case."""
    return _convert(data, _to_snake)


def convert_to_camel(data: Any) -> Any:
    """Recursively convert snake_case keys to camelCase."""
    return _convert(data, _to_camel)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, falling back to defaults.

    Environment variables (MINEBOT_*) are applied on top of defaults only
    when no file exists.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Save configuration to file, with camelCase keys."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(convert_to_camel(config.model_dump()), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return path
