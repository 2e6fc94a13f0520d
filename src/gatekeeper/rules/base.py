"""Rule abstractions for deterministic review."""

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from functools import lru_cache
from posixpath import basename
from typing import Protocol, Sequence

from gatekeeper.models import Category, Finding, LineRange, Scope, Severity

MAX_SNIPPET_LENGTH = 120


def path_matches(path: str, globs: Sequence[str]) -> bool:
  """Check a path against fnmatch-style globs.

  A glob matches the full path, the path anchored at the repository root
  ("/src/x.ts", so "*/fixtures/*" also catches a top-level fixtures
  directory), or the file's base name.
  """
  candidates = (path, f"/{path}", basename(path))
  return any(fnmatchcase(c, g) for g in globs for c in candidates)


@lru_cache(maxsize=None)
def compile_pattern(pattern: str, ignore_case: bool = False) -> re.Pattern[str]:
  """Compile and cache a rule regex. Raises re.error for invalid patterns."""
  return re.compile(pattern, re.IGNORECASE if ignore_case else 0)


class Exclusion(Protocol):
  """Declarative predicate that exempts a path or line from a rule."""

  def excludes(self, path: str, text: str | None) -> bool:
    """Return True if the rule must not report on this path/line."""
    ...


@dataclass(frozen=True)
class PathExclusion:
  """Exempts files whose path matches any of the globs."""

  globs: tuple[str, ...]

  def excludes(self, path: str, text: str | None) -> bool:
    return path_matches(path, self.globs)


@dataclass(frozen=True)
class ContentExclusion:
  """Exempts lines matching any allow-list pattern.

  Metric rules have no line text, so content exclusions never apply to
  them.
  """

  patterns: tuple[str, ...]
  ignore_case: bool = False

  def excludes(self, path: str, text: str | None) -> bool:
    if text is None:
      return False
    return any(compile_pattern(p, self.ignore_case).search(text) for p in self.patterns)


@dataclass(frozen=True)
class PatternSpec:
  """Mechanical matcher: any of an ordered set of regexes."""

  patterns: tuple[str, ...]
  ignore_case: bool = False

  def search(self, text: str) -> re.Match[str] | None:
    for pattern in self.patterns:
      match = compile_pattern(pattern, self.ignore_case).search(text)
      if match:
        return match
    return None


@dataclass(frozen=True)
class Threshold:
  """Metric tier: values strictly above `above` get `severity`."""

  above: float
  severity: Severity


@dataclass(frozen=True)
class MetricSpec:
  """Derived-metric matcher: a per-file scalar against ascending tiers."""

  metric: str
  thresholds: tuple[Threshold, ...]

  def severity_for(self, value: float) -> Severity | None:
    """Severity of the highest breached tier, or None."""
    breached = None
    for tier in self.thresholds:
      if value > tier.above:
        breached = tier.severity
    return breached


@dataclass(frozen=True)
class Rule:
  """A single checklist item with its detection mechanism.

  Rules are immutable values loaded from the catalog. Whether a rule
  reports on a path or line is decided only by `applies_to` and the
  attached exclusions.
  """

  id: str
  name: str
  category: Category
  severity: Severity
  scope: Scope
  message: str
  matcher: PatternSpec | MetricSpec
  applies_to: tuple[str, ...] = ()
  exclusions: tuple[PathExclusion | ContentExclusion, ...] = ()
  suggestion: str | None = None

  def applies_to_path(self, path: str) -> bool:
    if not self.applies_to:
      return True
    return path_matches(path, self.applies_to)

  def is_excluded(self, path: str, text: str | None = None) -> bool:
    return any(e.excludes(path, text) for e in self.exclusions)

  def finding(
    self,
    file: str,
    line_range: LineRange | None,
    snippet: str = "",
    severity: Severity | None = None,
    detail: str | None = None,
  ) -> Finding:
    """Build a Finding that references this rule."""
    message = self.message if detail is None else f"{self.message} ({detail})"
    return Finding(
      rule_id=self.id,
      file=file,
      line_range=line_range,
      snippet=normalize_snippet(snippet),
      severity=severity or self.severity,
      message=" ".join(message.split()),
    )


def normalize_snippet(text: str) -> str:
  """Single-line, trimmed snippet suitable for rendering."""
  text = " ".join(text.split())
  if len(text) > MAX_SNIPPET_LENGTH:
    text = text[:MAX_SNIPPET_LENGTH - 3].rstrip() + "..."
  return text
