"""Configuration loading and saving."""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from automaton.config.schema import Config
from automaton.errors import ConfigError
from automaton.utils.helpers import get_data_path

CONFIG_FILENAME = "automaton.json"


def get_data_dir() -> Path:
    """Automaton home directory, created on first use."""
    path = get_data_path()
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


def get_config_path() -> Path:
    return get_data_dir() / CONFIG_FILENAME


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from disk.

    A missing file yields the defaults (plus any ``AUTOMATON_*`` env
    overrides). A file that exists but cannot be parsed raises ConfigError;
    running with a silently-ignored config is worse than not running.
    """
    path = config_path or get_config_path()
    if not path.exists():
        logger.debug(f"No config at {path}, using defaults")
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Config(**data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write configuration as JSON with owner-only permissions."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(), indent=2), encoding="utf-8")
    path.chmod(0o600)
    return path
