"""Application settings."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from gatekeeper.aggregator import DEFAULT_EXCLUDE_PATHS

OutputFormat = Literal["markdown", "json", "terminal", "github"]


class Settings(BaseModel):
  """Application configuration."""

  model_config = ConfigDict(extra="forbid")

  warning_threshold: int = Field(default=0, ge=0)
  # None means every reported check gates the verdict
  required_checks: list[str] | None = None
  exclude_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))
  workers: int = Field(default=1, ge=1)
  catalog_path: Path | None = None
  format: OutputFormat = "markdown"
