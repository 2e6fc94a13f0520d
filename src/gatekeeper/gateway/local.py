"""Gateways over local files and git branches."""

import logging
from pathlib import Path
from typing import Any

import yaml

from gatekeeper.diff.git import branch_exists, extract_branch_diff, extract_commit_messages
from gatekeeper.errors import IngestionError, NotFoundError, PublishError
from gatekeeper.gateway.base import RawChangeSet, VCSGateway
from gatekeeper.models import CheckState, CheckStatus

logger = logging.getLogger(__name__)


def load_check_statuses(path: Path | None) -> list[CheckStatus]:
  """Read check states from a YAML file.

  Accepts either a mapping of check name to state or a list of
  {name, state} entries:

    lint: pass
    unit-tests: fail
  """
  if path is None:
    return []

  try:
    data = yaml.safe_load(Path(path).read_text()) or {}
  except OSError as e:
    raise IngestionError(f"Cannot read checks file {path}: {e}") from e
  except yaml.YAMLError as e:
    raise IngestionError(f"Checks file {path} is not valid YAML: {e}") from e

  entries: list[tuple[Any, Any]]
  if isinstance(data, dict):
    entries = list(data.items())
  elif isinstance(data, list) and all(isinstance(item, dict) for item in data):
    entries = [(item.get("name"), item.get("state")) for item in data]
  else:
    raise IngestionError(f"Checks file {path} must be a mapping or a list of entries")

  statuses: dict[str, CheckStatus] = {}
  for name, state in entries:
    if not name:
      raise IngestionError(f"Checks file {path} has an entry without a name")
    try:
      statuses[str(name)] = CheckStatus(str(name), CheckState(str(state).lower()))
    except ValueError:
      raise IngestionError(f"Check {name!r} has unknown state {state!r}") from None
  return [statuses[name] for name in sorted(statuses)]


def _write_output(output_path: Path | None, text: str) -> None:
  if output_path is None:
    raise PublishError("No output path configured for publishing")
  try:
    Path(output_path).write_text(text)
  except OSError as e:
    raise PublishError(f"Cannot write report to {output_path}: {e}") from e
  logger.info("Wrote review to %s", output_path)


class LocalGateway(VCSGateway):
  """Reviews a diff file. The pull request id is only used in messages."""

  def __init__(
    self,
    diff_path: Path,
    description: str = "",
    checks_path: Path | None = None,
    output_path: Path | None = None,
  ):
    self._diff_path = Path(diff_path)
    self._description = description
    self._checks_path = checks_path
    self._output_path = output_path

  @property
  def name(self) -> str:
    return "local"

  def fetch_change_set(self, pr_id: str) -> RawChangeSet:
    if not self._diff_path.exists():
      raise NotFoundError(f"Diff file not found: {self._diff_path}")
    try:
      raw_diff = self._diff_path.read_text()
    except (OSError, UnicodeDecodeError) as e:
      raise IngestionError(f"Cannot read diff file {self._diff_path}: {e}") from e
    return RawChangeSet(raw_diff=raw_diff, pr_description=self._description)

  def fetch_check_statuses(self, pr_id: str) -> list[CheckStatus]:
    return load_check_statuses(self._checks_path)

  def publish(self, pr_id: str, text: str) -> None:
    _write_output(self._output_path, text)


class GitGateway(VCSGateway):
  """Reviews a local branch against its merge base with `base`.

  The pull request id is the branch name, and the description is built
  from the branch's commit messages.
  """

  def __init__(
    self,
    base: str = "main",
    cwd: Path | None = None,
    checks_path: Path | None = None,
    output_path: Path | None = None,
  ):
    self._base = base
    self._cwd = cwd
    self._checks_path = checks_path
    self._output_path = output_path

  @property
  def name(self) -> str:
    return "git"

  def fetch_change_set(self, pr_id: str) -> RawChangeSet:
    if not branch_exists(pr_id, self._cwd):
      raise NotFoundError(f"Branch not found: {pr_id}")
    raw_diff = extract_branch_diff(pr_id, self._base, self._cwd)
    description = extract_commit_messages(pr_id, self._base, self._cwd)
    return RawChangeSet(raw_diff=raw_diff, pr_description=description)

  def fetch_check_statuses(self, pr_id: str) -> list[CheckStatus]:
    return load_check_statuses(self._checks_path)

  def publish(self, pr_id: str, text: str) -> None:
    _write_output(self._output_path, text)
