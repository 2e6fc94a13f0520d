"""Derived per-file metrics used by file-metric rules."""

import re
from posixpath import basename, splitext
from typing import Callable

from gatekeeper.models import ChangeSet, FileDiff, FileStatus

Metric = Callable[[FileDiff, ChangeSet], float]

_metrics: dict[str, Metric] = {}


def register_metric(name: str, metric: Metric) -> None:
  """Register a metric function under a catalog name."""
  _metrics[name] = metric


def get_metric(name: str) -> Metric:
  """Look up a metric. Raises KeyError for unknown names."""
  return _metrics[name]


def list_metrics() -> list[str]:
  return sorted(_metrics)


_IMPORT = re.compile(r"^\s*(?:import\b|export\s+.*\bfrom\s+['\"]|(?:const|let|var)\s+.*=\s*require\()")
_USE_STATE = re.compile(r"\buseState\s*(?:<[^>]*>)?\s*\(")
_USE_EFFECT = re.compile(r"\buse(?:Layout)?Effect\s*\(")
_DEPENDENCY_LINE = re.compile(r'^\s*"[@\w./-]+"\s*:\s*"[~^<>=]*\d')

_TEST_MARKERS = (".test", ".spec")
_LOCKFILES = ("package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb")


def _added_lines(file_diff: FileDiff, change_set: ChangeSet) -> float:
  return file_diff.added_line_count


def _hunk_count(file_diff: FileDiff, change_set: ChangeSet) -> float:
  return len(file_diff.hunks)


def _count_matching(pattern: re.Pattern[str]) -> Metric:
  def metric(file_diff: FileDiff, change_set: ChangeSet) -> float:
    return sum(len(pattern.findall(line.text)) for line in file_diff.added_lines)
  return metric


def _import_count(file_diff: FileDiff, change_set: ChangeSet) -> float:
  return sum(1 for line in file_diff.added_lines if _IMPORT.match(line.text))


def _longest_added_line(file_diff: FileDiff, change_set: ChangeSet) -> float:
  return max((len(line.text) for line in file_diff.added_lines), default=0)


def _max_indent_depth(file_diff: FileDiff, change_set: ChangeSet) -> float:
  """Deepest indentation level, measured in the file's own indent unit."""
  widths = []
  for line in file_diff.added_lines:
    if not line.text.strip():
      continue
    leading = line.text[:len(line.text) - len(line.text.lstrip())]
    widths.append(len(leading.replace("\t", "    ")))

  unit = min((w for w in widths if w > 0), default=0)
  if unit == 0:
    return 0
  return max(widths) // unit


def tested_stem(path: str) -> str | None:
  """Stem of the module a test file covers, or None if not a test file."""
  stem, _ = splitext(basename(path))
  for marker in _TEST_MARKERS:
    if stem.endswith(marker):
      return stem[:-len(marker)]
  if stem.startswith("test_"):
    return stem[len("test_"):]
  if stem.endswith("_test"):
    return stem[:-len("_test")]
  if "/__tests__/" in f"/{path}":
    return stem
  return None


def _missing_test(file_diff: FileDiff, change_set: ChangeSet) -> float:
  """1 for a newly added source file with no matching test in the change-set."""
  if file_diff.status != FileStatus.ADDED or tested_stem(file_diff.path) is not None:
    return 0
  stem, _ = splitext(basename(file_diff.path))
  tested = {tested_stem(f.path) for f in change_set.files if f.status != FileStatus.DELETED}
  return 0 if stem in tested else 1


def _lockfile_missing(file_diff: FileDiff, change_set: ChangeSet) -> float:
  """1 when a manifest adds dependencies but no lockfile changed."""
  if not any(_DEPENDENCY_LINE.match(line.text) for line in file_diff.added_lines):
    return 0
  if any(basename(f.path) in _LOCKFILES for f in change_set.files):
    return 0
  return 1


register_metric("added_lines", _added_lines)
register_metric("hunk_count", _hunk_count)
register_metric("import_count", _import_count)
register_metric("use_state_count", _count_matching(_USE_STATE))
register_metric("use_effect_count", _count_matching(_USE_EFFECT))
register_metric("longest_added_line", _longest_added_line)
register_metric("max_indent_depth", _max_indent_depth)
register_metric("missing_test", _missing_test)
register_metric("lockfile_missing", _lockfile_missing)
