"""Core review orchestration."""

import logging
import threading
from pathlib import Path
from typing import Sequence

from gatekeeper.aggregator import FindingAggregator
from gatekeeper.config import Settings, load_config, parse_config
from gatekeeper.decision import decide
from gatekeeper.diff import DiffScanner
from gatekeeper.errors import IngestionError, ReviewCancelled
from gatekeeper.gateway import VCSGateway
from gatekeeper.models import ChangeSet, CheckStatus, FileDiff, ReviewReport, Severity
from gatekeeper.output.formatter import OutputFormatter
from gatekeeper.rules import PatternMatcher, RuleCatalog, load_catalog

logger = logging.getLogger(__name__)


def _plural(count: int, noun: str) -> str:
  return f"{count} {noun}{'s' if count != 1 else ''}"


def summarize(files: Sequence[FileDiff], critical: int, warning: int, info: int) -> str:
  """One-line summary built only from counts."""
  added = sum(f.added_line_count for f in files)
  return (
    f"{_plural(len(files), 'file')} changed, {_plural(added, 'line')} added. "
    f"Findings: {critical} critical, {_plural(warning, 'warning')}, {info} info."
  )


def build_report(
  change_set: ChangeSet,
  catalog: RuleCatalog,
  check_statuses: Sequence[CheckStatus] = (),
  settings: Settings | None = None,
  cancel_event: threading.Event | None = None,
) -> ReviewReport:
  """Run matching, aggregation and the decision over a scanned change-set.

  The report depends only on the arguments, so equal inputs produce equal
  reports.
  """
  settings = settings or Settings()

  result = PatternMatcher(catalog, workers=settings.workers).evaluate(change_set, cancel_event)
  aggregation = FindingAggregator(catalog, settings.exclude_paths).aggregate(result)
  findings = aggregation.findings

  if cancel_event is not None and cancel_event.is_set():
    raise ReviewCancelled("Review cancelled before a verdict was reached")

  decision = decide(
    findings,
    check_statuses,
    warning_threshold=settings.warning_threshold,
    required_checks=settings.required_checks,
  )

  rationale = list(decision.reasons)
  if aggregation.failed_rules:
    rationale.append(f"Rule(s) could not be evaluated: {', '.join(aggregation.failed_rules)}.")

  def count(severity: Severity) -> int:
    return sum(1 for f in findings if f.severity == severity)

  return ReviewReport(
    summary=summarize(
      change_set.files, count(Severity.CRITICAL), count(Severity.WARNING), count(Severity.INFO)
    ),
    files=change_set.files,
    findings_by_category=aggregation.findings_by_category,
    checklist_results=aggregation.checklist_results,
    verdict=decision.verdict,
    rationale=tuple(rationale),
    check_statuses=tuple(sorted(check_statuses, key=lambda c: c.name)),
    failed_rules=aggregation.failed_rules,
    catalog_version=catalog.version,
    pr_description=change_set.pr_description,
  )


class ReviewOrchestrator:
  """Orchestrates the review of one pull request.

  Fetching and publishing go through the gateway. Everything between is
  pure, so a cancelled run leaves nothing behind.
  """

  def __init__(
    self,
    gateway: VCSGateway,
    settings: Settings | None = None,
    catalog: RuleCatalog | None = None,
  ):
    self.gateway = gateway
    self.settings = settings or Settings()
    self.catalog = catalog or load_catalog(self.settings.catalog_path)
    self._scanner = DiffScanner()

  def run(self, pr_id: str, cancel_event: threading.Event | None = None) -> ReviewReport:
    """Review a pull request and return the report.

    Raises:
      IngestionError: If the change-set or checks cannot be fetched or parsed.
      ReviewCancelled: If cancel_event is set before the verdict.
    """
    def checkpoint(stage: str) -> None:
      if cancel_event is not None and cancel_event.is_set():
        raise ReviewCancelled(f"Review of {pr_id} cancelled {stage}")

    checkpoint("before fetching")
    logger.debug("Fetching change-set %s via %s gateway", pr_id, self.gateway.name)
    try:
      raw = self.gateway.fetch_change_set(pr_id)
      checkpoint("after fetching the change-set")
      check_statuses = self.gateway.fetch_check_statuses(pr_id)
    except OSError as e:
      raise IngestionError(f"Cannot fetch {pr_id}: {e}") from e

    checkpoint("after fetching check statuses")
    change_set = self._scanner.scan(raw.raw_diff, raw.pr_description, raw.file_list)
    logger.debug("Scanned %d file(s)", len(change_set.files))

    checkpoint("after scanning")
    report = build_report(change_set, self.catalog, check_statuses, self.settings, cancel_event)
    logger.info("Review of %s: %s", pr_id, report.verdict.value)
    return report

  def publish(self, pr_id: str, report: ReviewReport, formatter: OutputFormatter) -> str:
    """Render the report and hand it to the gateway. Returns the rendered text."""
    text = formatter.format(report)
    self.gateway.publish(pr_id, text)
    return text


def run_review(
  pr_id: str,
  gateway: VCSGateway,
  config_path: Path | None = None,
  warning_threshold: int | None = None,
  cancel_event: threading.Event | None = None,
) -> ReviewReport:
  """Run a review with the given options."""
  settings = load_config(config_path)
  if warning_threshold is not None:
    settings = parse_config({**settings.model_dump(), "warning_threshold": warning_threshold})

  orchestrator = ReviewOrchestrator(gateway, settings)
  return orchestrator.run(pr_id, cancel_event)
