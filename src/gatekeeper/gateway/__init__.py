"""Version-control hosting gateways."""

from gatekeeper.gateway.base import RawChangeSet, VCSGateway
from gatekeeper.gateway.github import GitHubGateway, check_state
from gatekeeper.gateway.local import GitGateway, LocalGateway, load_check_statuses

__all__ = [
  "GitGateway",
  "GitHubGateway",
  "LocalGateway",
  "RawChangeSet",
  "VCSGateway",
  "check_state",
  "load_check_statuses",
]
