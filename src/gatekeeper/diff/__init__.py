"""Diff extraction and parsing."""

from gatekeeper.diff.git import (
  GitError,
  branch_exists,
  extract_branch_diff,
  extract_commit_messages,
)
from gatekeeper.diff.scanner import DiffScanner, parse_hunk_header, scan_diff

__all__ = [
  "DiffScanner",
  "GitError",
  "branch_exists",
  "extract_branch_diff",
  "extract_commit_messages",
  "parse_hunk_header",
  "scan_diff",
]
