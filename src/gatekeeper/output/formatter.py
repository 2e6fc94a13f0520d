"""Output formatting for review reports."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gatekeeper.models import (
  DESCRIPTION_PATH,
  Category,
  ChecklistStatus,
  Finding,
  ReviewReport,
  Severity,
  Verdict,
)

INLINE_COMMENTS_HEADING = "## Inline Comments"
NO_LINE_MARKER = "-"


class OutputFormatter(ABC):
  """Base output formatter."""

  @abstractmethod
  def format(self, report: ReviewReport) -> str:
    """Format review report for output."""
    ...


def code_span(text: str) -> str:
  """Inline code that survives backticks in the text."""
  longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
  fence = "`" * (longest + 1)
  if longest:
    return f"{fence} {text} {fence}"
  return f"{fence}{text}{fence}"


def format_inline_comment(finding: Finding) -> list[str]:
  """Lines for one finding in the Inline Comments section.

  Findings without a line range are marked ":-" so a path ending in
  ":<digits>" is never read back as a line number.
  """
  location = f"{finding.file}:{finding.line_range or NO_LINE_MARKER}"
  lines = [f"- **{finding.rule_id}** [{finding.severity.value}] {code_span(location)} {finding.message}"]
  if finding.snippet:
    lines.append(f"  > {finding.snippet}")
  return lines


class MarkdownFormatter(OutputFormatter):
  """Canonical Markdown report.

  Output depends only on the report, so equal reports render to identical
  text. The Inline Comments section can be read back with
  `gatekeeper.output.parser.parse_findings`.
  """

  def format(self, report: ReviewReport) -> str:
    lines = [f"# Review: {report.verdict.value}", ""]
    if report.catalog_version:
      lines.extend([f"Rule catalog {report.catalog_version}", ""])

    lines.extend(["## Summary", "", report.summary, ""])
    lines.extend(self._files(report))
    lines.extend(self._checks(report))
    lines.extend(self._checklist(report))
    lines.extend(self._security(report))
    lines.extend(self._tests(report))
    lines.extend(self._verdict(report))
    lines.extend(self._inline_comments(report))

    return "\n".join(lines).rstrip("\n") + "\n"

  def _files(self, report: ReviewReport) -> list[str]:
    lines = ["## Files Changed", ""]
    if not report.files:
      return lines + ["No files changed.", ""]

    lines.extend(["| File | Status | Added lines |", "| --- | --- | ---: |"])
    for file_diff in report.files:
      path = file_diff.path
      if file_diff.old_path:
        path = f"{file_diff.old_path} -> {file_diff.path}"
      lines.append(f"| `{path}` | {file_diff.status.value} | {file_diff.added_line_count} |")
    return lines + [""]

  def _checks(self, report: ReviewReport) -> list[str]:
    if not report.check_statuses:
      return []
    lines = ["## CI Checks", ""]
    for check in report.check_statuses:
      lines.append(f"- {check.name}: {check.state.value}")
    return lines + [""]

  def _checklist(self, report: ReviewReport) -> list[str]:
    lines = ["## Checklist", ""]
    for category, status in report.checklist_results.items():
      findings = report.findings_by_category.get(category, ())
      lines.extend([f"### {category.value}: {status.value.upper()}", ""])
      if findings:
        for finding in findings:
          lines.append(f"- {finding.rule_id} at {code_span(finding.location)}")
      elif status == ChecklistStatus.UNKNOWN:
        lines.append("Some rules in this category could not be evaluated.")
      else:
        lines.append("No findings.")
      lines.append("")
    if report.failed_rules:
      lines.extend([f"Rules not evaluated: {', '.join(report.failed_rules)}", ""])
    return lines

  def _security(self, report: ReviewReport) -> list[str]:
    findings = report.findings_by_category.get(Category.SECURITY, ())
    lines = ["## Security Scan", ""]
    if not findings:
      return lines + ["No security findings.", ""]

    critical = sum(1 for f in findings if f.severity == Severity.CRITICAL)
    lines.append(f"{len(findings)} security finding(s), {critical} critical.")
    lines.append("")
    for finding in findings:
      lines.append(f"- {finding.severity.value}: {finding.rule_id} at {code_span(finding.location)}")
    return lines + [""]

  def _tests(self, report: ReviewReport) -> list[str]:
    findings = report.findings_by_category.get(Category.TESTING, ())
    lines = ["## Test Coverage", ""]
    status = report.checklist_results.get(Category.TESTING)
    if not findings:
      if status == ChecklistStatus.UNKNOWN:
        return lines + ["Test coverage could not be determined.", ""]
      return lines + ["No test coverage gaps detected.", ""]

    for finding in findings:
      lines.append(f"- {code_span(finding.location)}: {finding.message}")
    return lines + [""]

  def _verdict(self, report: ReviewReport) -> list[str]:
    lines = ["## Verdict", "", f"**{report.verdict.value}**", ""]
    for reason in report.rationale:
      lines.append(f"- {reason}")
    return lines + [""]

  def _inline_comments(self, report: ReviewReport) -> list[str]:
    lines = [INLINE_COMMENTS_HEADING, ""]
    findings = report.findings
    if not findings:
      return lines + ["No inline comments.", ""]
    for finding in findings:
      lines.extend(format_inline_comment(finding))
    return lines + [""]


class JsonFormatter(OutputFormatter):
  """JSON output formatter."""

  def format(self, report: ReviewReport) -> str:
    data: dict[str, Any] = {
      "verdict": report.verdict.value,
      "summary": report.summary,
      "rationale": list(report.rationale),
      "catalog_version": report.catalog_version,
      "files": [
        {
          "path": f.path,
          "status": f.status.value,
          "old_path": f.old_path,
          "added_lines": f.added_line_count,
        }
        for f in report.files
      ],
      "checks": [{"name": c.name, "state": c.state.value} for c in report.check_statuses],
      "checklist": {c.value: s.value for c, s in report.checklist_results.items()},
      "failed_rules": list(report.failed_rules),
      "findings": [_finding_dict(f) for f in report.findings],
    }
    return json.dumps(data, indent=2)


def _finding_dict(finding: Finding) -> dict[str, Any]:
  line_range = finding.line_range
  return {
    "rule_id": finding.rule_id,
    "file": finding.file,
    "line_start": line_range.start if line_range else None,
    "line_end": line_range.end if line_range else None,
    "severity": finding.severity.value,
    "message": finding.message,
    "snippet": finding.snippet,
  }


class TerminalFormatter(OutputFormatter):
  """Rich terminal output formatter."""

  SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "dim",
  }

  VERDICT_STYLES = {
    Verdict.APPROVE: "green",
    Verdict.REQUEST_CHANGES: "yellow",
    Verdict.REJECT: "red",
  }

  STATUS_STYLES = {
    ChecklistStatus.PASS: "green",
    ChecklistStatus.FAIL: "red",
    ChecklistStatus.UNKNOWN: "yellow",
  }

  def __init__(self, console: Console | None = None):
    self.console = console or Console()

  def format(self, report: ReviewReport) -> str:
    self._print_summary(report)
    self._print_checklist(report)
    self._print_findings(report)
    self._print_verdict(report)
    return ""

  def _print_summary(self, report: ReviewReport) -> None:
    title = "[bold]Review[/bold]"
    if report.catalog_version:
      title += f" (catalog {report.catalog_version})"
    self.console.print()
    self.console.print(Panel(report.summary, title=title, border_style="blue"))

  def _print_checklist(self, report: ReviewReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", width=18)
    table.add_column("Status", width=8)
    table.add_column("Findings", justify="right")

    for category, status in report.checklist_results.items():
      findings = report.findings_by_category.get(category, ())
      table.add_row(
        category.value,
        Text(status.value.upper(), style=self.STATUS_STYLES[status]),
        str(len(findings)),
      )

    self.console.print()
    self.console.print(table)

  def _print_findings(self, report: ReviewReport) -> None:
    findings = report.findings
    if not findings:
      self.console.print("\n[green]No findings.[/green]")
      return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Severity", width=10)
    table.add_column("Rule", width=10)
    table.add_column("Location", width=36)
    table.add_column("Issue", min_width=40)

    for finding in findings:
      style = self.SEVERITY_STYLES.get(finding.severity, "")
      message = Text(finding.message)
      if finding.snippet:
        message.append(f"\n{finding.snippet}", style="dim")
      table.add_row(
        Text(finding.severity.value.upper(), style=style),
        finding.rule_id,
        Text(finding.location),
        message,
      )

    self.console.print()
    self.console.print(table)
    self.console.print(f"\n[dim]{len(findings)} finding(s)[/dim]")

  def _print_verdict(self, report: ReviewReport) -> None:
    style = self.VERDICT_STYLES[report.verdict]
    self.console.print(f"\n[bold {style}]{report.verdict.value}[/bold {style}]")
    for reason in report.rationale:
      self.console.print(f"  - {reason}", markup=False)


class GitHubFormatter(OutputFormatter):
  """GitHub Actions workflow command formatter for PR annotations."""

  def format(self, report: ReviewReport) -> str:
    lines = []
    for finding in report.findings:
      level = self._severity_to_level(finding.severity)
      params = [f"title={_escape_property(finding.rule_id)}"]
      if finding.file != DESCRIPTION_PATH:
        params.insert(0, f"file={_escape_property(finding.file)}")
        if finding.line_range:
          params.append(f"line={finding.line_range.start}")
          params.append(f"endLine={finding.line_range.end}")
      lines.append(f"::{level} {','.join(params)}::{_escape_data(finding.message)}")

    verdict = f"Verdict: {report.verdict.value}. " + " ".join(report.rationale)
    lines.append(f"::notice title=gatekeeper::{_escape_data(verdict)}")
    return "\n".join(lines)

  def _severity_to_level(self, severity: Severity) -> str:
    if severity == Severity.CRITICAL:
      return "error"
    if severity == Severity.WARNING:
      return "warning"
    return "notice"


def _escape_data(value: str) -> str:
  return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
  return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


FORMATTERS: dict[str, type[OutputFormatter]] = {
  "terminal": TerminalFormatter,
  "json": JsonFormatter,
  "markdown": MarkdownFormatter,
  "github": GitHubFormatter,
}


def get_formatter(format_type: str) -> OutputFormatter:
  """Get formatter by type name."""
  formatter_class = FORMATTERS.get(format_type)
  if not formatter_class:
    raise ValueError(f"Unknown format: {format_type}")
  return formatter_class()
