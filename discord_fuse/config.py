"""
Configuration management for discord-fuse.

Resolution (highest → lowest):
  1. CLI flags
  2. Environment (DISCORD_TOKEN, DISCORD_API_URL)
  3. ~/.config/discord-fuse/config.json
  4. Defaults

The token only comes from the environment; it is never read from
config.json or accepted as a flag.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .api_client import DEFAULT_API_URL

log = logging.getLogger(__name__)

TOKEN_ENV = "DISCORD_TOKEN"
API_URL_ENV = "DISCORD_API_URL"

# Largest u32, as reported for channel files before their size is known
DEFAULT_PLACEHOLDER_SIZE = 2**32 - 1


@dataclass
class FuseConfig:
    """Full discord-fuse configuration."""
    token: str = ""
    api_url: str = DEFAULT_API_URL
    # History paging
    page_size: int = 100
    max_pages: int = 10
    # Reported st_size for channel files (see InodeMixin.getattr)
    placeholder_size: int = DEFAULT_PLACEHOLDER_SIZE
    # Seconds a read/close waits on the network before failing with EIO
    fetch_timeout: float = 30.0
    flush_timeout: float = 30.0
    request_timeout: float = 30.0
    # Largest message accepted through write()
    max_message_bytes: int = 8000
    show_timestamps: bool = False
    fsname: str = "discord-fuse"


# Settings the JSON file may override (everything but the token)
_FILE_KEYS = frozenset(f.name for f in fields(FuseConfig)) - {"token"}


# --- Path helpers ---

def get_config_dir() -> Path:
    """Get config directory (~/.config/discord-fuse/)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "discord-fuse"


def get_config_path() -> Path:
    """Get path to config.json."""
    return get_config_dir() / "config.json"


# --- Read config.json ---

def read_config_file(path: Optional[Path] = None) -> Optional[dict]:
    """Read config.json. Returns None if not found or unreadable."""
    path = path or get_config_path()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        log.warning(f"Could not read config at {path}: {e}")
        return None
    if not isinstance(data, dict):
        log.warning(f"Ignoring config at {path}: expected a JSON object")
        return None
    return data


def _apply(config: FuseConfig, values: dict, source: str) -> None:
    for key, value in values.items():
        if value is None:
            continue
        if key not in _FILE_KEYS:
            log.warning(f"Unknown config key {key!r} in {source}, ignoring")
            continue
        expected = type(getattr(config, key))
        try:
            # bool("false") is True, so booleans must be real JSON booleans
            if expected is bool and not isinstance(value, bool):
                raise TypeError(f"expected true/false, got {value!r}")
            setattr(config, key, expected(value))
        except (TypeError, ValueError) as e:
            log.warning(f"Invalid value for {key!r} in {source}: {e}")


# --- High-level config loading ---

def load_config(
    cli_overrides: Optional[dict] = None,
    config_path: Optional[Path] = None,
) -> FuseConfig:
    """Load full config with precedence CLI > env > config.json > defaults."""
    config = FuseConfig()

    file_data = read_config_file(config_path)
    if file_data:
        _apply(config, file_data, "config.json")

    env_api_url = os.environ.get(API_URL_ENV)
    if env_api_url:
        config.api_url = env_api_url

    if cli_overrides:
        _apply(config, cli_overrides, "command line")

    config.token = os.environ.get(TOKEN_ENV, "")
    return config
