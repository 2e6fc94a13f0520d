"""Reads findings back from a rendered Markdown report."""

import re

from gatekeeper.errors import GatekeeperError
from gatekeeper.models import Finding, LineRange, Severity
from gatekeeper.output.formatter import INLINE_COMMENTS_HEADING, NO_LINE_MARKER
from gatekeeper.rules.catalog import RuleCatalog

_COMMENT = re.compile(
  r"^- \*\*(?P<rule>[^*]+)\*\* \[(?P<severity>\w+)\] "
  r"(?P<fence>`+)(?P<location>.+?)(?P=fence)(?!`) (?P<message>.*)$"
)
_SNIPPET_PREFIX = "  > "
_LINE_SUFFIX = re.compile(r"^(?P<start>\d+)(?:-(?P<end>\d+))?$")


class ReportParseError(GatekeeperError):
  """Rendered report does not have the expected shape."""


def split_location(location: str) -> tuple[str, LineRange | None]:
  """Split "path:12", "path:12-14" or "path:-" into a path and line range."""
  path, sep, suffix = location.rpartition(":")
  if sep and suffix == NO_LINE_MARKER:
    return path, None
  match = _LINE_SUFFIX.match(suffix) if sep else None
  if not match:
    return location, None
  start = int(match.group("start"))
  end = int(match.group("end") or start)
  return path, LineRange(start, end)


def parse_findings(text: str, catalog: RuleCatalog | None = None) -> list[Finding]:
  """Reconstruct findings from the Inline Comments section.

  When a catalog is given, every rule id must exist in it.

  Raises:
    ReportParseError: If the section is missing or a comment is malformed.
    UnknownRuleError: If a rule id is not in the catalog.
  """
  lines = text.splitlines()
  try:
    start = lines.index(INLINE_COMMENTS_HEADING) + 1
  except ValueError:
    raise ReportParseError("Report has no Inline Comments section") from None

  findings: list[Finding] = []
  for line in lines[start:]:
    if line.startswith("## "):
      break
    if line.startswith(_SNIPPET_PREFIX):
      if not findings or findings[-1].snippet:
        raise ReportParseError(f"Unexpected snippet line: {line!r}")
      findings[-1] = _with_snippet(findings[-1], line[len(_SNIPPET_PREFIX):])
      continue
    if not line.startswith("- "):
      continue

    match = _COMMENT.match(line)
    if not match:
      raise ReportParseError(f"Malformed inline comment: {line!r}")

    rule_id = match.group("rule")
    if catalog is not None:
      catalog.get(rule_id)

    try:
      severity = Severity(match.group("severity"))
    except ValueError:
      raise ReportParseError(f"Unknown severity in comment: {line!r}") from None

    location = match.group("location")
    if len(match.group("fence")) > 1:
      location = location[1:-1]
    path, line_range = split_location(location)
    findings.append(Finding(
      rule_id=rule_id,
      file=path,
      line_range=line_range,
      snippet="",
      severity=severity,
      message=match.group("message"),
    ))

  return findings


def _with_snippet(finding: Finding, snippet: str) -> Finding:
  return Finding(
    rule_id=finding.rule_id,
    file=finding.file,
    line_range=finding.line_range,
    snippet=snippet,
    severity=finding.severity,
    message=finding.message,
  )
