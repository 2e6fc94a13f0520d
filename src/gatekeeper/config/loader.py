"""Configuration file loading."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gatekeeper.config.settings import Settings
from gatekeeper.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = [".gatekeeper.yaml", ".gatekeeper.yml", "gatekeeper.yaml", "gatekeeper.yml"]


def find_config_file(config_path: Path | None = None, cwd: Path | None = None) -> Path | None:
  """Find config file path, or None if no config exists.

  An explicit path must exist. Otherwise the working directory is searched
  for the standard file names, in order.
  """
  if config_path is not None:
    if not config_path.exists():
      raise ConfigError(f"Config file not found: {config_path}")
    return config_path

  root = cwd or Path.cwd()
  for filename in CONFIG_FILENAMES:
    path = root / filename
    if path.exists():
      return path

  return None


def load_config(config_path: Path | None = None, cwd: Path | None = None) -> Settings:
  """Load configuration from file or defaults."""
  path = find_config_file(config_path, cwd)
  if path:
    return _load_from_file(path)
  return Settings()


def _load_from_file(path: Path) -> Settings:
  """Load settings from a YAML file."""
  try:
    with open(path) as f:
      data = yaml.safe_load(f) or {}
  except OSError as e:
    raise ConfigError(f"Cannot read config file {path}: {e}") from e
  except yaml.YAMLError as e:
    raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

  logger.debug("Loaded config from %s", path)
  settings = parse_config(data)

  # Relative catalog paths are resolved against the config file
  if settings.catalog_path is not None and not settings.catalog_path.is_absolute():
    settings = settings.model_copy(update={"catalog_path": path.parent / settings.catalog_path})
  return settings


def parse_config(data: Any) -> Settings:
  """Parse config dict into Settings."""
  if not isinstance(data, dict):
    raise ConfigError("Config file must contain a mapping")

  try:
    return Settings(**data)
  except ValidationError as e:
    raise ConfigError(f"Invalid config: {e}") from e
