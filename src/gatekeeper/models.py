"""Core domain models for review decisions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence


class Severity(Enum):
  """Finding severity levels."""

  INFO = "info"
  WARNING = "warning"
  CRITICAL = "critical"


class Scope(Enum):
  """Part of the change-set a rule is evaluated against."""

  DIFF_LINE = "diff-line"
  FILE_METRIC = "file-metric"
  DESCRIPTION_TEXT = "description-text"


class Category(Enum):
  """Checklist categories, in report order."""

  LINT = "lint"
  TYPES = "types"
  STRUCTURE = "structure"
  HOOKS = "hooks"
  PERFORMANCE = "performance"
  STATE_MANAGEMENT = "state-management"
  DATA_FETCHING = "data-fetching"
  STYLING = "styling"
  ROUTING = "routing"
  SECURITY = "security"
  ACCESSIBILITY = "accessibility"
  TESTING = "testing"
  BUILD = "build"
  UNKNOWN = "unknown"


class FileStatus(Enum):
  """How a file changed."""

  ADDED = "added"
  MODIFIED = "modified"
  DELETED = "deleted"
  RENAMED = "renamed"
  BINARY = "binary"


class CheckState(Enum):
  """CI check state as reported by the hosting service."""

  PASS = "pass"
  FAIL = "fail"
  PENDING = "pending"


class ChecklistStatus(Enum):
  """Outcome of one checklist category."""

  PASS = "pass"
  FAIL = "fail"
  UNKNOWN = "unknown"


class Verdict(Enum):
  """Final review decision."""

  APPROVE = "Approve"
  REQUEST_CHANGES = "RequestChanges"
  REJECT = "Reject"


DESCRIPTION_PATH = "<description>"


@dataclass(frozen=True)
class AddedLine:
  """A line added by a hunk, numbered in the new file."""

  number: int
  text: str


@dataclass(frozen=True)
class Hunk:
  """A single hunk's added lines."""

  start_line: int
  added_lines: tuple[AddedLine, ...] = ()


@dataclass(frozen=True)
class FileDiff:
  """A single file's diff."""

  path: str
  status: FileStatus
  hunks: tuple[Hunk, ...] = ()
  old_path: str | None = None

  @property
  def is_scannable(self) -> bool:
    """Binary and deleted files are listed but never scanned line by line."""
    return self.status not in (FileStatus.BINARY, FileStatus.DELETED)

  @property
  def added_lines(self) -> list[AddedLine]:
    return [line for hunk in self.hunks for line in hunk.added_lines]

  @property
  def added_line_count(self) -> int:
    return sum(len(hunk.added_lines) for hunk in self.hunks)


@dataclass(frozen=True)
class ChangeSet:
  """Files under review plus the pull request description.

  Files are unique by path and kept sorted by path.
  """

  files: tuple[FileDiff, ...] = ()
  pr_description: str = ""

  def __post_init__(self) -> None:
    paths = [f.path for f in self.files]
    if len(paths) != len(set(paths)):
      duplicates = sorted({p for p in paths if paths.count(p) > 1})
      raise ValueError(f"Duplicate file paths in change-set: {', '.join(duplicates)}")
    object.__setattr__(self, "files", tuple(sorted(self.files, key=lambda f: f.path)))

  @property
  def paths(self) -> list[str]:
    return [f.path for f in self.files]

  def get(self, path: str) -> FileDiff | None:
    for file_diff in self.files:
      if file_diff.path == path:
        return file_diff
    return None


@dataclass(frozen=True, order=True)
class LineRange:
  """Inclusive range of new-file line numbers."""

  start: int
  end: int

  def __str__(self) -> str:
    if self.start == self.end:
      return str(self.start)
    return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Finding:
  """One concrete rule violation.

  Built only through the rule catalog, so `rule_id` always names an
  existing rule.
  """

  rule_id: str
  file: str
  line_range: LineRange | None
  snippet: str
  severity: Severity
  message: str

  @property
  def dedup_key(self) -> tuple[str, str, LineRange | None]:
    return (self.rule_id, self.file, self.line_range)

  @property
  def sort_key(self) -> tuple[str, int, str]:
    line = self.line_range.start if self.line_range else 0
    return (self.file, line, self.rule_id)

  @property
  def location(self) -> str:
    if self.line_range is None:
      return self.file
    return f"{self.file}:{self.line_range}"


@dataclass(frozen=True)
class CheckStatus:
  """A CI check and its state."""

  name: str
  state: CheckState


@dataclass(frozen=True)
class ReviewReport:
  """Result of a review run.

  A pure function of the change-set, the rule catalog and the check
  statuses.
  """

  summary: str
  files: Sequence[FileDiff]
  findings_by_category: Mapping[Category, Sequence[Finding]]
  checklist_results: Mapping[Category, ChecklistStatus]
  verdict: Verdict
  rationale: Sequence[str]
  check_statuses: Sequence[CheckStatus] = ()
  failed_rules: Sequence[str] = ()
  catalog_version: str = ""
  pr_description: str = field(default="", repr=False)

  @property
  def findings(self) -> list[Finding]:
    """All findings in deterministic order."""
    return sorted(
      (f for group in self.findings_by_category.values() for f in group),
      key=lambda f: f.sort_key,
    )

  def count(self, severity: Severity) -> int:
    return sum(1 for f in self.findings if f.severity == severity)
