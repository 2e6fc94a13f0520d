"""Verdict decision from aggregated findings and CI check states."""

from dataclasses import dataclass
from typing import Collection, Sequence

from gatekeeper.models import CheckState, CheckStatus, Finding, Severity, Verdict


@dataclass(frozen=True)
class Decision:
  """A verdict and the reasons that produced it."""

  verdict: Verdict
  reasons: tuple[str, ...]


def _plural(count: int, noun: str) -> str:
  return f"{count} {noun}{'s' if count != 1 else ''}"


def decide(
  findings: Sequence[Finding],
  check_statuses: Sequence[CheckStatus],
  warning_threshold: int = 0,
  required_checks: Collection[str] | None = None,
) -> Decision:
  """Map findings and check states to a verdict.

  1. A failing required check or any critical finding rejects.
  2. Otherwise more than `warning_threshold` warnings request changes.
  3. Otherwise the change is approved.

  Args:
    findings: Aggregated findings.
    check_statuses: CI checks reported for the pull request.
    warning_threshold: Warnings tolerated before requesting changes.
    required_checks: Names of checks that gate the verdict. None means
      every reported check is required.

  Returns:
    Decision with the verdict and human-readable reasons, in a fixed order.
  """
  if warning_threshold < 0:
    raise ValueError("warning_threshold must be >= 0")

  def is_required(check: CheckStatus) -> bool:
    return required_checks is None or check.name in required_checks

  checks = sorted(check_statuses, key=lambda c: c.name)
  failed = [c.name for c in checks if c.state == CheckState.FAIL and is_required(c)]
  pending = [c.name for c in checks if c.state == CheckState.PENDING and is_required(c)]
  criticals = sum(1 for f in findings if f.severity == Severity.CRITICAL)
  warnings = sum(1 for f in findings if f.severity == Severity.WARNING)

  reasons: list[str] = []
  if failed:
    reasons.append(f"Required check(s) failed: {', '.join(failed)}.")
  if criticals:
    reasons.append(f"{_plural(criticals, 'critical finding')} must be fixed.")

  if reasons:
    verdict = Verdict.REJECT
  elif warnings > warning_threshold:
    verdict = Verdict.REQUEST_CHANGES
    reasons.append(
      f"{_plural(warnings, 'warning')} found, more than the allowed {warning_threshold}."
    )
  else:
    verdict = Verdict.APPROVE
    if warnings:
      reasons.append(f"{_plural(warnings, 'warning')} found, within the allowed {warning_threshold}.")
    else:
      reasons.append("No blocking findings.")

  if pending:
    reasons.append(f"Check(s) still pending: {', '.join(pending)}.")

  return Decision(verdict=verdict, reasons=tuple(reasons))
