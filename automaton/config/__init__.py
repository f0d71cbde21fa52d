"""Configuration module for automaton."""

from automaton.config.loader import get_config_path, get_data_dir, load_config, save_config
from automaton.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path", "get_data_dir"]
