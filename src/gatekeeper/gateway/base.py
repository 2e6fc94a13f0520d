"""Abstract boundary to the version-control hosting service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping

from gatekeeper.models import CheckStatus, FileStatus


@dataclass(frozen=True)
class RawChangeSet:
  """Unparsed pull request data as fetched from the host."""

  raw_diff: str
  pr_description: str = ""
  # Host-reported file statuses, when the host provides them
  file_list: Mapping[str, FileStatus] | None = field(default=None)


class VCSGateway(ABC):
  """Fetches change-sets and check statuses, and publishes reports.

  This is the only component that performs network or repository I/O.
  """

  @property
  @abstractmethod
  def name(self) -> str:
    """Gateway identifier used in logs."""
    ...

  @abstractmethod
  def fetch_change_set(self, pr_id: str) -> RawChangeSet:
    """Fetch the diff, description and file list of a pull request.

    Raises:
      NotFoundError: If the pull request does not exist.
      IngestionError: If the data cannot be retrieved.
    """
    ...

  @abstractmethod
  def fetch_check_statuses(self, pr_id: str) -> list[CheckStatus]:
    """Fetch the CI check states of a pull request."""
    ...

  @abstractmethod
  def publish(self, pr_id: str, text: str) -> None:
    """Publish a rendered report. Raises PublishError on failure."""
    ...

  def close(self) -> None:
    """Release connections held by the gateway."""

  def __enter__(self) -> "VCSGateway":
    return self

  def __exit__(self, *exc_info: object) -> None:
    self.close()
