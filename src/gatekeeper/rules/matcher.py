"""Rule evaluation over a change-set."""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from gatekeeper.errors import ReviewCancelled, RuleEvaluationError
from gatekeeper.models import DESCRIPTION_PATH, ChangeSet, Category, FileDiff, Finding, LineRange, Scope
from gatekeeper.rules.base import Rule
from gatekeeper.rules.catalog import RuleCatalog
from gatekeeper.rules.metrics import get_metric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
  """Findings from one evaluation pass, sorted by (file, line, rule id)."""

  findings: tuple[Finding, ...] = ()
  failed_rules: tuple[str, ...] = ()

  def failed_categories(self, catalog: RuleCatalog) -> set[Category]:
    return {catalog.get(rule_id).category for rule_id in self.failed_rules if rule_id in catalog}


@dataclass
class _Outcome:
  findings: list[Finding] = field(default_factory=list)
  errors: dict[str, RuleEvaluationError] = field(default_factory=dict)

  def merge(self, other: "_Outcome") -> None:
    self.findings.extend(other.findings)
    for rule_id, error in other.errors.items():
      self.errors.setdefault(rule_id, error)


def _format_value(value: float) -> str:
  return f"{value:g}"


class PatternMatcher:
  """Evaluates every catalog rule against a change-set.

  Files are independent, so with `workers > 1` they are evaluated on a
  thread pool. Results are merged and sorted before being returned, so the
  output never depends on scheduling. A rule that raises is dropped from
  the result and reported in `failed_rules`; all other rules still run.

  Example:
    matcher = PatternMatcher(load_catalog(), workers=4)
    result = matcher.evaluate(change_set)
  """

  def __init__(self, catalog: RuleCatalog, workers: int = 1):
    self._catalog = catalog
    self._workers = max(1, workers)
    self._line_rules = catalog.with_scope(Scope.DIFF_LINE)
    self._metric_rules = catalog.with_scope(Scope.FILE_METRIC)
    self._description_rules = catalog.with_scope(Scope.DESCRIPTION_TEXT)

  def evaluate(
    self,
    change_set: ChangeSet,
    cancel_event: threading.Event | None = None,
  ) -> MatchResult:
    """Evaluate all rules and return deduplicated, sorted findings.

    Raises:
      ReviewCancelled: If cancel_event is set before evaluation completes.
    """
    files = [f for f in change_set.files if f.is_scannable]

    def run(file_diff: FileDiff) -> _Outcome:
      if cancel_event is not None and cancel_event.is_set():
        raise ReviewCancelled("Review cancelled during rule evaluation")
      return self._evaluate_file(file_diff, change_set)

    if self._workers > 1 and len(files) > 1:
      with ThreadPoolExecutor(max_workers=self._workers) as pool:
        outcomes = list(pool.map(run, files))
    else:
      outcomes = [run(f) for f in files]

    total = _Outcome()
    for outcome in outcomes:
      total.merge(outcome)
    total.merge(self._evaluate_description(change_set.pr_description))

    for rule_id in sorted(total.errors):
      logger.warning("Rule %s skipped: %s", rule_id, total.errors[rule_id].cause)

    unique: dict[tuple[str, int, str], Finding] = {}
    for finding in sorted(total.findings, key=lambda f: f.sort_key):
      if finding.rule_id in total.errors:
        continue
      unique.setdefault(finding.sort_key, finding)

    return MatchResult(
      findings=tuple(unique.values()),
      failed_rules=tuple(sorted(total.errors)),
    )

  def _evaluate_file(self, file_diff: FileDiff, change_set: ChangeSet) -> _Outcome:
    outcome = _Outcome()

    for rule in self._line_rules:
      self._guard(rule, outcome, lambda r=rule: self._match_lines(r, file_diff))
    for rule in self._metric_rules:
      self._guard(rule, outcome, lambda r=rule: self._match_metric(r, file_diff, change_set))

    return outcome

  def _evaluate_description(self, description: str) -> _Outcome:
    outcome = _Outcome()
    if not description.strip():
      return outcome

    for rule in self._description_rules:
      self._guard(rule, outcome, lambda r=rule: self._match_description(r, description))
    return outcome

  def _guard(
    self,
    rule: Rule,
    outcome: _Outcome,
    evaluate: Callable[[], list[Finding]],
  ) -> None:
    """Run one rule, isolating any failure to that rule."""
    if rule.id in outcome.errors:
      return
    try:
      outcome.findings.extend(evaluate())
    except Exception as e:
      outcome.errors[rule.id] = RuleEvaluationError(rule.id, e)

  def _match_lines(self, rule: Rule, file_diff: FileDiff) -> list[Finding]:
    matcher = rule.matcher
    path = file_diff.path

    if not rule.applies_to_path(path) or rule.is_excluded(path):
      return []

    findings = []
    for line in file_diff.added_lines:
      if matcher.search(line.text) and not rule.is_excluded(path, line.text):
        findings.append(rule.finding(path, LineRange(line.number, line.number), line.text))
    return findings

  def _match_metric(self, rule: Rule, file_diff: FileDiff, change_set: ChangeSet) -> list[Finding]:
    matcher = rule.matcher
    path = file_diff.path

    if not rule.applies_to_path(path) or rule.is_excluded(path):
      return []

    value = get_metric(matcher.metric)(file_diff, change_set)
    severity = matcher.severity_for(value)
    if severity is None:
      return []
    detail = f"{matcher.metric} = {_format_value(value)}"
    return [rule.finding(path, None, severity=severity, detail=detail)]

  def _match_description(self, rule: Rule, description: str) -> list[Finding]:
    matcher = rule.matcher

    findings = []
    for number, text in enumerate(description.split("\n"), start=1):
      if matcher.search(text) and not rule.is_excluded(DESCRIPTION_PATH, text):
        findings.append(rule.finding(DESCRIPTION_PATH, LineRange(number, number), text))
    return findings


def evaluate_rules(catalog: RuleCatalog, change_set: ChangeSet, workers: int = 1) -> MatchResult:
  """Evaluate every rule in the catalog against a change-set."""
  return PatternMatcher(catalog, workers).evaluate(change_set)
