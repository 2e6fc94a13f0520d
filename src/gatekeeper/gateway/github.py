"""GitHub REST API gateway."""

import logging
import os
from typing import Any

import httpx

from gatekeeper.errors import IngestionError, NotFoundError, PublishError
from gatekeeper.gateway.base import RawChangeSet, VCSGateway
from gatekeeper.models import CheckState, CheckStatus, FileStatus

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"

_FILE_STATUSES = {
  "added": FileStatus.ADDED,
  "removed": FileStatus.DELETED,
  "modified": FileStatus.MODIFIED,
  "changed": FileStatus.MODIFIED,
  "renamed": FileStatus.RENAMED,
  "copied": FileStatus.ADDED,
  "unchanged": FileStatus.MODIFIED,
}

_PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}


def check_state(status: str | None, conclusion: str | None) -> CheckState:
  """Map a GitHub check run's status and conclusion to a CheckState."""
  if status != "completed":
    return CheckState.PENDING
  if conclusion in _PASSING_CONCLUSIONS:
    return CheckState.PASS
  return CheckState.FAIL


class GitHubGateway(VCSGateway):
  """Reads pull requests from a GitHub repository and comments on them.

  Example:
    gateway = GitHubGateway("octo/app", token=os.environ["GITHUB_TOKEN"])
    raw = gateway.fetch_change_set("42")
  """

  DEFAULT_BASE_URL = "https://api.github.com"
  DEFAULT_TIMEOUT = 30.0
  PER_PAGE = 100

  def __init__(
    self,
    repo: str,
    token: str | None = None,
    client: httpx.Client | None = None,
    base_url: str | None = None,
  ):
    if repo.count("/") != 1 or not all(repo.split("/")):
      raise ValueError(f"Repository must be 'owner/name', got {repo!r}")
    self._repo = repo
    token = token if token is not None else os.environ.get("GITHUB_TOKEN")

    headers = {"Accept": JSON_MEDIA_TYPE, "User-Agent": "gatekeeper"}
    if token:
      headers["Authorization"] = f"Bearer {token}"

    self._owns_client = client is None
    self._client = client or httpx.Client(
      base_url=base_url or self.DEFAULT_BASE_URL,
      timeout=self.DEFAULT_TIMEOUT,
    )
    self._client.headers.update(headers)

  @property
  def name(self) -> str:
    return "github"

  def fetch_change_set(self, pr_id: str) -> RawChangeSet:
    number = self._number(pr_id)
    logger.info("Fetching %s#%d", self._repo, number)

    pull = self._get_json(f"pulls/{number}", pr_id)
    diff = self._get(f"pulls/{number}", pr_id, accept=DIFF_MEDIA_TYPE).text
    files = self._paginate(f"pulls/{number}/files", pr_id)

    try:
      description = pull.get("body") or ""
      file_list = {
        entry["filename"]: _FILE_STATUSES.get(entry.get("status", ""), FileStatus.MODIFIED)
        for entry in files
      }
    except (AttributeError, KeyError, TypeError) as e:
      raise IngestionError(f"Unexpected GitHub response for pull request {pr_id}: {e!r}") from e
    logger.debug("Found %d changed files", len(file_list))

    return RawChangeSet(raw_diff=diff, pr_description=description, file_list=file_list)

  def fetch_check_statuses(self, pr_id: str) -> list[CheckStatus]:
    number = self._number(pr_id)
    pull = self._get_json(f"pulls/{number}", pr_id)
    head = pull.get("head") if isinstance(pull, dict) else None
    sha = head.get("sha") if isinstance(head, dict) else None
    if not sha:
      raise IngestionError(f"Pull request {pr_id} has no head commit")

    runs = self._paginate(f"commits/{sha}/check-runs", pr_id, key="check_runs")
    try:
      statuses = {
        run["name"]: CheckStatus(run["name"], check_state(run.get("status"), run.get("conclusion")))
        for run in runs
      }
    except (AttributeError, KeyError, TypeError) as e:
      raise IngestionError(f"Unexpected GitHub check runs for pull request {pr_id}: {e!r}") from e
    return [statuses[name] for name in sorted(statuses)]

  def publish(self, pr_id: str, text: str) -> None:
    number = self._number(pr_id)
    try:
      response = self._client.post(
        f"/repos/{self._repo}/issues/{number}/comments",
        json={"body": text},
      )
      response.raise_for_status()
    except httpx.HTTPError as e:
      raise PublishError(f"Failed to publish review on {self._repo}#{number}: {e}") from e
    logger.info("Published review on %s#%d", self._repo, number)

  def close(self) -> None:
    if self._owns_client:
      self._client.close()

  @staticmethod
  def _number(pr_id: str) -> int:
    try:
      number = int(pr_id)
    except ValueError:
      raise NotFoundError(f"Pull request id must be a number, got {pr_id!r}") from None
    if number <= 0:
      raise NotFoundError(f"Pull request id must be positive, got {pr_id!r}")
    return number

  def _get(
    self,
    endpoint: str,
    pr_id: str,
    accept: str | None = None,
    params: dict[str, Any] | None = None,
  ) -> httpx.Response:
    headers = {"Accept": accept} if accept else None
    try:
      response = self._client.get(f"/repos/{self._repo}/{endpoint}", headers=headers, params=params)
    except httpx.RequestError as e:
      raise IngestionError(f"Request to GitHub failed: {e}") from e

    if response.status_code == 404:
      raise NotFoundError(f"Pull request {self._repo}#{pr_id} not found")
    if response.is_error:
      raise IngestionError(f"GitHub API error: {response.status_code} for {endpoint}")
    return response

  def _paginate(self, endpoint: str, pr_id: str, key: str | None = None) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    page = 1
    while True:
      data = self._get_json(endpoint, pr_id, params={"page": page, "per_page": self.PER_PAGE})
      batch = data.get(key, []) if key and isinstance(data, dict) else data
      if not isinstance(batch, list):
        raise IngestionError(f"Expected a list from GitHub for {endpoint}")
      items.extend(batch)
      if len(batch) < self.PER_PAGE:
        return items
      page += 1

  def _get_json(self, endpoint: str, pr_id: str, params: dict[str, Any] | None = None) -> Any:
    response = self._get(endpoint, pr_id, params=params)
    try:
      return response.json()
    except ValueError as e:
      raise IngestionError(f"GitHub returned invalid JSON for {endpoint}") from e
