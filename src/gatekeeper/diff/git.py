"""Local git access for reviewing branches without a hosting service."""

import subprocess
from pathlib import Path

from gatekeeper.errors import IngestionError


class GitError(IngestionError):
  """Git command failed."""


def _sanitize_error(stderr: str) -> str:
  """Remove potentially sensitive path information from error messages."""
  lines = stderr.strip().split("\n")
  sanitized = []
  for line in lines:
    if "fatal:" in line or "error:" in line:
      sanitized.append(line.split("/")[-1] if "/" in line else line)
    else:
      sanitized.append(line)
  return "\n".join(sanitized)


def run_git(*args: str, cwd: Path | None = None) -> str:
  """Run a git command and return stdout."""
  try:
    result = subprocess.run(
      ["git", *args],
      capture_output=True,
      text=True,
      check=True,
      cwd=cwd,
    )
    return result.stdout
  except subprocess.CalledProcessError as e:
    sanitized = _sanitize_error(e.stderr)
    raise GitError(f"git {' '.join(args)} failed: {sanitized}") from e
  except FileNotFoundError as e:
    raise GitError("git executable not found") from e


def branch_exists(branch: str, cwd: Path | None = None) -> bool:
  try:
    run_git("rev-parse", "--verify", "--quiet", f"{branch}^{{commit}}", cwd=cwd)
  except GitError:
    return False
  return True


def extract_branch_diff(branch: str, base: str = "main", cwd: Path | None = None) -> str:
  """Raw diff between branch and its merge base with base."""
  return run_git("diff", "--no-color", "--no-ext-diff", f"{base}...{branch}", cwd=cwd)


def extract_commit_messages(branch: str, base: str = "main", cwd: Path | None = None) -> str:
  """Commit messages on branch since base, oldest first."""
  return run_git("log", "--reverse", "--format=%B", f"{base}..{branch}", cwd=cwd).strip()
