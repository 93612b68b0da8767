"""TOML configuration loader.

Loads the application defaults from ``todochat/config/defaults.toml`` or a
user-supplied file and validates them into an :class:`AppConfig`.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from todochat.schemas.config import AppConfig

# Default config directory relative to the todochat package
_CONFIG_DIR = Path(__file__).parent / "config"

_SECTIONS = ("chat", "model", "retry", "server")


def default_config_path() -> Path:
    return _CONFIG_DIR / "defaults.toml"


def load_app_config(config_path: Path | None = None) -> AppConfig:
    """Load the application config from a TOML file.

    Unknown top-level tables are ignored; missing tables and keys fall back
    to the schema defaults.

    Args:
        config_path: Path to a TOML file. Defaults to todochat/config/defaults.toml.

    Returns:
        AppConfig with values from the TOML file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML is malformed or a value fails validation.
    """
    path = config_path or default_config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    sections = {name: raw[name] for name in _SECTIONS if isinstance(raw.get(name), dict)}
    try:
        return AppConfig.model_validate(sections)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e
