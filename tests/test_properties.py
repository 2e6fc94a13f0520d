"""Property-based tests for the review pipeline."""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from gatekeeper.aggregator import aggregate
from gatekeeper.config import Settings
from gatekeeper.decision import decide
from gatekeeper.diff import scan_diff
from gatekeeper.models import (
  CheckState,
  CheckStatus,
  Finding,
  LineRange,
  Severity,
  Verdict,
)
from gatekeeper.output import MarkdownFormatter, parse_findings
from gatekeeper.review import build_report
from gatekeeper.rules import MatchResult, PatternMatcher, RuleCatalog, load_catalog

CATALOG: RuleCatalog = load_catalog()
RULE_IDS = [rule.id for rule in CATALOG]

# Lines that trip a variety of rules, mixed with harmless ones
SAMPLE_LINES = [
  'const API_KEY = "sk_live_abc123";',
  "console.log(user);",
  "debugger;",
  "var total = 0;",
  "if (a == b) {",
  "const data: any = load();",
  "// TODO: remove",
  '<img src="/logo.png">',
  "useEffect(async () => {",
  "el.innerHTML = html;",
  "const x = 1;",
  "return value;",
  "",
  "export function Card() {",
]

PATHS = ["src/a.ts", "src/components/B.tsx", "src/c.js", "src/d.test.ts", "docs/readme.md"]

findings_strategy = st.lists(
  st.builds(
    lambda rule_id, path, line, severity: CATALOG.finding(rule_id, path, LineRange(line, line), severity=severity),
    st.sampled_from(RULE_IDS),
    st.sampled_from(PATHS),
    st.integers(min_value=1, max_value=50),
    st.sampled_from(list(Severity)),
  ),
  max_size=30,
)

checks_strategy = st.lists(
  st.builds(CheckStatus, st.sampled_from(["build", "lint", "unit-tests", "e2e"]), st.sampled_from(list(CheckState))),
  max_size=4,
  unique_by=lambda c: c.name,
)


@st.composite
def diffs(draw) -> str:
  """Git diff text over a few files with random added lines."""
  paths = draw(st.lists(st.sampled_from(PATHS), min_size=1, max_size=4, unique=True))
  out = []
  for path in paths:
    lines = draw(st.lists(st.sampled_from(SAMPLE_LINES), min_size=1, max_size=12))
    out.extend([
      f"diff --git a/{path} b/{path}",
      f"--- a/{path}",
      f"+++ b/{path}",
      f"@@ -1,0 +1,{len(lines)} @@",
    ])
    out.extend(f"+{line}" for line in lines)
  return "\n".join(out) + "\n"


class TestDecisionProperties:
  @given(findings=findings_strategy, checks=checks_strategy, threshold=st.integers(min_value=0, max_value=5))
  def test_critical_dominates(self, findings: list[Finding], checks: list[CheckStatus], threshold: int) -> None:
    critical = Finding("SEC-001", "src/x.ts", LineRange(1, 1), "", Severity.CRITICAL, "Hardcoded credential")
    assert decide([*findings, critical], checks, threshold).verdict == Verdict.REJECT

  @given(findings=findings_strategy, checks=checks_strategy)
  def test_verdict_rules(self, findings: list[Finding], checks: list[CheckStatus]) -> None:
    verdict = decide(findings, checks).verdict
    has_critical = any(f.severity == Severity.CRITICAL for f in findings)
    has_failed_check = any(c.state == CheckState.FAIL for c in checks)
    warnings = sum(1 for f in findings if f.severity == Severity.WARNING)

    if has_critical or has_failed_check:
      assert verdict == Verdict.REJECT
    elif warnings > 0:
      assert verdict == Verdict.REQUEST_CHANGES
    else:
      assert verdict == Verdict.APPROVE

  @given(findings=findings_strategy, checks=checks_strategy)
  def test_order_independent(self, findings: list[Finding], checks: list[CheckStatus]) -> None:
    assert decide(findings, checks) == decide(findings[::-1], checks[::-1])


class TestAggregationProperties:
  @given(findings=findings_strategy)
  def test_no_duplicate_findings(self, findings: list[Finding]) -> None:
    doubled = MatchResult(findings=tuple(findings + findings))
    keys = [f.dedup_key for f in aggregate(doubled, CATALOG).findings]

    assert len(keys) == len(set(keys))

  @given(findings=findings_strategy)
  def test_every_finding_references_a_rule(self, findings: list[Finding]) -> None:
    for finding in aggregate(MatchResult(findings=tuple(findings)), CATALOG).findings:
      assert finding.rule_id in CATALOG


class TestPipelineProperties:
  @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
  @given(diff=diffs())
  def test_report_is_deterministic(self, diff: str) -> None:
    change_set = scan_diff(diff)
    first = build_report(change_set, CATALOG)
    second = build_report(scan_diff(diff), CATALOG, settings=Settings(workers=4))

    assert first == second
    assert MarkdownFormatter().format(first) == MarkdownFormatter().format(second)

  @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
  @given(diff=diffs())
  def test_render_round_trip(self, diff: str) -> None:
    report = build_report(scan_diff(diff), CATALOG)
    assert parse_findings(MarkdownFormatter().format(report), CATALOG) == report.findings

  @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
  @given(diff=diffs())
  def test_findings_point_at_added_lines(self, diff: str) -> None:
    change_set = scan_diff(diff)
    added = {(f.path, line.number) for f in change_set.files for line in f.added_lines}

    for finding in PatternMatcher(CATALOG).evaluate(change_set).findings:
      if finding.line_range is not None:
        assert (finding.file, finding.line_range.start) in added


@pytest.mark.parametrize("workers", [1, 2, 8])
def test_worker_count_does_not_change_result(workers: int, credential_diff: str, large_component_diff: str) -> None:
  change_set = scan_diff(credential_diff + large_component_diff)
  assert PatternMatcher(CATALOG, workers).evaluate(change_set) == PatternMatcher(CATALOG).evaluate(change_set)
