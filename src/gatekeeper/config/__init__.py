"""Configuration management."""

from gatekeeper.config.loader import CONFIG_FILENAMES, find_config_file, load_config, parse_config
from gatekeeper.config.settings import OutputFormat, Settings

__all__ = [
  "CONFIG_FILENAMES",
  "OutputFormat",
  "Settings",
  "find_config_file",
  "load_config",
  "parse_config",
]
