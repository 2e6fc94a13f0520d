"""Tests for the verdict decision."""

import pytest
from gatekeeper.decision import decide
from gatekeeper.models import CheckState, CheckStatus, Finding, LineRange, Severity, Verdict


def _finding(severity: Severity, line: int = 1) -> Finding:
  return Finding(
    rule_id="LINT-001",
    file="src/a.ts",
    line_range=LineRange(line, line),
    snippet="",
    severity=severity,
    message="msg",
  )


class TestDecide:
  def test_no_findings_approves(self) -> None:
    decision = decide([], [])

    assert decision.verdict == Verdict.APPROVE
    assert decision.reasons == ("No blocking findings.",)

  def test_info_findings_approve(self) -> None:
    assert decide([_finding(Severity.INFO)], []).verdict == Verdict.APPROVE

  def test_critical_rejects(self) -> None:
    decision = decide([_finding(Severity.CRITICAL), _finding(Severity.WARNING, 2)], [])

    assert decision.verdict == Verdict.REJECT
    assert "1 critical finding must be fixed." in decision.reasons

  def test_failed_check_rejects(self) -> None:
    decision = decide([], [CheckStatus("unit-tests", CheckState.FAIL)])

    assert decision.verdict == Verdict.REJECT
    assert decision.reasons[0] == "Required check(s) failed: unit-tests."

  def test_warning_over_threshold_requests_changes(self) -> None:
    decision = decide([_finding(Severity.WARNING)], [])

    assert decision.verdict == Verdict.REQUEST_CHANGES
    assert decision.reasons == ("1 warning found, more than the allowed 0.",)

  def test_warnings_within_threshold_approve(self) -> None:
    findings = [_finding(Severity.WARNING, line) for line in (1, 2)]
    decision = decide(findings, [], warning_threshold=2)

    assert decision.verdict == Verdict.APPROVE
    assert "2 warnings found, within the allowed 2." in decision.reasons

  def test_pending_checks_do_not_block(self) -> None:
    decision = decide([], [CheckStatus("e2e", CheckState.PENDING)])

    assert decision.verdict == Verdict.APPROVE
    assert decision.reasons[-1] == "Check(s) still pending: e2e."

  def test_only_required_checks_gate(self) -> None:
    checks = [CheckStatus("lint", CheckState.FAIL), CheckStatus("build", CheckState.PASS)]

    assert decide([], checks, required_checks=["build"]).verdict == Verdict.APPROVE
    assert decide([], checks, required_checks=["lint"]).verdict == Verdict.REJECT
    assert decide([], checks, required_checks=[]).verdict == Verdict.APPROVE

  def test_failed_checks_listed_in_name_order(self) -> None:
    checks = [CheckStatus("zeta", CheckState.FAIL), CheckStatus("alpha", CheckState.FAIL)]
    assert decide([], checks).reasons[0] == "Required check(s) failed: alpha, zeta."

  def test_negative_threshold_rejected(self) -> None:
    with pytest.raises(ValueError):
      decide([], [], warning_threshold=-1)

  def test_input_order_does_not_matter(self) -> None:
    findings = [_finding(Severity.WARNING), _finding(Severity.CRITICAL, 2)]
    checks = [CheckStatus("b", CheckState.PENDING), CheckStatus("a", CheckState.FAIL)]

    assert decide(findings, checks) == decide(list(reversed(findings)), list(reversed(checks)))
