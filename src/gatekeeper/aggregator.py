"""Finding aggregation: exclusions, deduplication and per-category results."""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from gatekeeper.models import DESCRIPTION_PATH, Category, ChecklistStatus, Finding, Severity
from gatekeeper.rules.base import path_matches
from gatekeeper.rules.catalog import RuleCatalog
from gatekeeper.rules.matcher import MatchResult

logger = logging.getLogger(__name__)

# Generated files, vendored code and test fixtures never produce findings
DEFAULT_EXCLUDE_PATHS: tuple[str, ...] = (
  "*/node_modules/*",
  "*/vendor/*",
  "*/third_party/*",
  "*/__generated__/*",
  "*.generated.*",
  "*.gen.ts",
  "*/fixtures/*",
  "*/__fixtures__/*",
  "*.snap",
  "*.example",
)


@dataclass(frozen=True)
class Aggregation:
  """Findings grouped by category with the checklist outcome of each."""

  findings_by_category: Mapping[Category, Sequence[Finding]]
  checklist_results: Mapping[Category, ChecklistStatus]
  failed_rules: Sequence[str] = ()

  @property
  def findings(self) -> list[Finding]:
    return sorted(
      (f for group in self.findings_by_category.values() for f in group),
      key=lambda f: f.sort_key,
    )


class FindingAggregator:
  """Turns raw matcher output into the per-category view used by reports.

  A category fails when it holds at least one non-info finding. If no
  finding fails it but one of its rules could not be evaluated, its result
  is unknown.
  """

  def __init__(self, catalog: RuleCatalog, exclude_paths: Sequence[str] = DEFAULT_EXCLUDE_PATHS):
    self._catalog = catalog
    self._exclude_paths = tuple(exclude_paths)

  def aggregate(self, result: MatchResult) -> Aggregation:
    kept = self._dedup(f for f in result.findings if not self._is_excluded(f))
    dropped = len(result.findings) - len(kept)
    if dropped:
      logger.debug("Dropped %d excluded or duplicate finding(s)", dropped)

    failed = result.failed_categories(self._catalog)
    categories = list(self._catalog.categories())
    if failed:
      categories.append(Category.UNKNOWN)

    grouped: dict[Category, list[Finding]] = {c: [] for c in categories}
    for finding in kept:
      category = self._category_of(finding)
      if category not in grouped:
        grouped[category] = []
        categories.append(category)
      grouped[category].append(finding)

    checklist: dict[Category, ChecklistStatus] = {}
    for category in categories:
      if category == Category.UNKNOWN:
        checklist[category] = ChecklistStatus.UNKNOWN
      elif any(f.severity != Severity.INFO for f in grouped[category]):
        checklist[category] = ChecklistStatus.FAIL
      elif category in failed:
        checklist[category] = ChecklistStatus.UNKNOWN
      else:
        checklist[category] = ChecklistStatus.PASS

    return Aggregation(
      findings_by_category={c: tuple(fs) for c, fs in grouped.items()},
      checklist_results=checklist,
      failed_rules=tuple(result.failed_rules),
    )

  def _is_excluded(self, finding: Finding) -> bool:
    if finding.file == DESCRIPTION_PATH:
      return False
    return path_matches(finding.file, self._exclude_paths)

  def _category_of(self, finding: Finding) -> Category:
    if finding.rule_id in self._catalog:
      return self._catalog.get(finding.rule_id).category
    return Category.UNKNOWN

  @staticmethod
  def _dedup(findings: Iterable[Finding]) -> list[Finding]:
    seen: set[tuple] = set()
    unique: list[Finding] = []
    for finding in sorted(findings, key=lambda f: f.sort_key):
      if finding.dedup_key in seen:
        continue
      seen.add(finding.dedup_key)
      unique.append(finding)
    return unique


def aggregate(
  result: MatchResult,
  catalog: RuleCatalog,
  exclude_paths: Sequence[str] = DEFAULT_EXCLUDE_PATHS,
) -> Aggregation:
  """Group, filter and deduplicate matcher findings."""
  return FindingAggregator(catalog, exclude_paths).aggregate(result)
