"""Tests for output formatters and report parsing."""

import json

import pytest
from rich.console import Console
from gatekeeper.diff import scan_diff
from gatekeeper.errors import UnknownRuleError
from gatekeeper.models import (
  DESCRIPTION_PATH,
  Category,
  ChecklistStatus,
  Finding,
  LineRange,
  ReviewReport,
  Severity,
  Verdict,
)
from gatekeeper.output import (
  GitHubFormatter,
  JsonFormatter,
  MarkdownFormatter,
  ReportParseError,
  TerminalFormatter,
  get_formatter,
  parse_findings,
)
from gatekeeper.output.formatter import INLINE_COMMENTS_HEADING, code_span, format_inline_comment
from gatekeeper.output.parser import split_location
from gatekeeper.review import build_report
from gatekeeper.rules import RuleCatalog


@pytest.fixture
def rejected_report(catalog: RuleCatalog, credential_diff: str, large_component_diff: str) -> ReviewReport:
  change_set = scan_diff(credential_diff + large_component_diff, pr_description="Adds a card")
  return build_report(change_set, catalog)


@pytest.fixture
def clean_report(catalog: RuleCatalog, clean_diff: str, passing_checks) -> ReviewReport:
  return build_report(scan_diff(clean_diff), catalog, passing_checks)


class TestMarkdownFormatter:
  def test_sections_in_order(self, rejected_report: ReviewReport) -> None:
    output = MarkdownFormatter().format(rejected_report)
    headings = [line for line in output.splitlines() if line.startswith("## ")]

    assert output.startswith("# Review: Reject\n")
    assert headings == [
      "## Summary",
      "## Files Changed",
      "## Checklist",
      "## Security Scan",
      "## Test Coverage",
      "## Verdict",
      "## Inline Comments",
    ]

  def test_checklist_section_per_category(self, rejected_report: ReviewReport) -> None:
    output = MarkdownFormatter().format(rejected_report)

    assert "### security: FAIL" in output
    assert "### structure: FAIL" in output
    assert "### lint: PASS" in output

  def test_inline_comments(self, rejected_report: ReviewReport) -> None:
    output = MarkdownFormatter().format(rejected_report)

    assert "- **SEC-001** [critical] `src/api/client.ts:2` Hardcoded credential" in output
    assert '  > const API_KEY = "sk_live_abc123";' in output
    assert "`src/components/UserCard.tsx:-` " in output

  def test_byte_identical(self, rejected_report: ReviewReport) -> None:
    formatter = MarkdownFormatter()
    assert formatter.format(rejected_report) == formatter.format(rejected_report)

  def test_clean_report(self, clean_report: ReviewReport) -> None:
    output = MarkdownFormatter().format(clean_report)

    assert output.startswith("# Review: Approve\n")
    assert "No security findings." in output
    assert "No inline comments." in output
    assert "- unit-tests: pass" in output

  def test_empty_change_set(self, catalog: RuleCatalog, empty_change_set) -> None:
    output = MarkdownFormatter().format(build_report(empty_change_set, catalog))
    assert "No files changed." in output


class TestParseFindings:
  def test_round_trip(self, rejected_report: ReviewReport, catalog: RuleCatalog) -> None:
    output = MarkdownFormatter().format(rejected_report)
    assert parse_findings(output, catalog) == rejected_report.findings

  def test_round_trip_without_findings(self, clean_report: ReviewReport) -> None:
    assert parse_findings(MarkdownFormatter().format(clean_report)) == []

  def test_line_ranges_and_description(self) -> None:
    text = "\n".join([
      "## Inline Comments",
      "",
      "- **HOOKS-004** [warning] `src/a.ts:3-5` Suppressed hook dependencies",
      "- **SEC-014** [critical] `<description>:2` Credential pasted",
      "  > token=abc",
      "",
    ])
    findings = parse_findings(text)

    assert findings[0].line_range == LineRange(3, 5)
    assert findings[0].snippet == ""
    assert findings[1].file == DESCRIPTION_PATH
    assert findings[1].snippet == "token=abc"

  def test_missing_section(self) -> None:
    with pytest.raises(ReportParseError):
      parse_findings("# Review: Approve\n")

  def test_malformed_comment(self) -> None:
    with pytest.raises(ReportParseError):
      parse_findings("## Inline Comments\n\n- SEC-001 broken\n")

  def test_unknown_rule_with_catalog(self, catalog: RuleCatalog) -> None:
    text = "## Inline Comments\n\n- **NOPE-001** [info] `a.ts:1` Nope\n"
    with pytest.raises(UnknownRuleError):
      parse_findings(text, catalog)

  @pytest.mark.parametrize("location,expected", [
    ("src/a.ts:12", ("src/a.ts", LineRange(12, 12))),
    ("src/a.ts:3-9", ("src/a.ts", LineRange(3, 9))),
    ("src/a.ts", ("src/a.ts", None)),
    ("C:notes.txt", ("C:notes.txt", None)),
    ("src/a.ts:-", ("src/a.ts", None)),
    ("logs/build:12:-", ("logs/build:12", None)),
  ])
  def test_split_location(self, location: str, expected: tuple) -> None:
    assert split_location(location) == expected

  @pytest.mark.parametrize("path,line_range", [
    ("src/a`b.ts", LineRange(4, 4)),
    ("src/``odd``.ts", None),
    ("`leading.ts", LineRange(1, 2)),
    ("logs/build:12", None),
    ("logs/build:12", LineRange(3, 3)),
  ])
  def test_awkward_paths_round_trip(self, catalog: RuleCatalog, path: str, line_range: LineRange | None) -> None:
    finding = catalog.finding("SEC-001", path, line_range, snippet="x")
    text = "\n".join([INLINE_COMMENTS_HEADING, "", *format_inline_comment(finding), ""])

    assert parse_findings(text, catalog) == [finding]

  @pytest.mark.parametrize("text,expected", [
    ("src/a.ts:1", "`src/a.ts:1`"),
    ("a`b", "`` a`b ``"),
    ("a``b", "``` a``b ```"),
  ])
  def test_code_span(self, text: str, expected: str) -> None:
    assert code_span(text) == expected


class TestJsonFormatter:
  def test_format(self, rejected_report: ReviewReport) -> None:
    data = json.loads(JsonFormatter().format(rejected_report))

    assert data["verdict"] == "Reject"
    assert data["checklist"]["security"] == "fail"
    assert data["findings"][0]["rule_id"] == "SEC-001"
    assert data["findings"][0]["line_start"] == 2
    assert [f["path"] for f in data["files"]] == ["src/api/client.ts", "src/components/UserCard.tsx"]

  def test_key_order_is_stable(self, rejected_report: ReviewReport) -> None:
    data = json.loads(JsonFormatter().format(rejected_report))
    assert list(data)[:3] == ["verdict", "summary", "rationale"]


class TestGitHubFormatter:
  def test_annotations(self, rejected_report: ReviewReport) -> None:
    lines = GitHubFormatter().format(rejected_report).splitlines()

    assert lines[0] == "::error file=src/api/client.ts,title=SEC-001,line=2,endLine=2::Hardcoded credential"
    assert lines[-1].startswith("::notice title=gatekeeper::Verdict: Reject.")

  def test_description_finding_has_no_file(self) -> None:
    finding = Finding("SEC-014", DESCRIPTION_PATH, LineRange(1, 1), "", Severity.CRITICAL, "Leak")
    report = ReviewReport(
      summary="s",
      files=(),
      findings_by_category={Category.SECURITY: (finding,)},
      checklist_results={Category.SECURITY: ChecklistStatus.FAIL},
      verdict=Verdict.REJECT,
      rationale=(),
    )
    assert GitHubFormatter().format(report).splitlines()[0] == "::error title=SEC-014::Leak"


class TestTerminalFormatter:
  def test_prints_to_console(self, rejected_report: ReviewReport) -> None:
    console = Console(record=True, width=160)
    assert TerminalFormatter(console).format(rejected_report) == ""

    text = console.export_text()
    assert "SEC-001" in text
    assert "Reject" in text


class TestGetFormatter:
  @pytest.mark.parametrize("name,cls", [
    ("markdown", MarkdownFormatter),
    ("json", JsonFormatter),
    ("terminal", TerminalFormatter),
    ("github", GitHubFormatter),
  ])
  def test_known(self, name: str, cls: type) -> None:
    assert isinstance(get_formatter(name), cls)

  def test_unknown(self) -> None:
    with pytest.raises(ValueError, match="Unknown format"):
      get_formatter("html")
