"""Rule catalog loading and lookup."""

import logging
from collections.abc import Iterable, Iterator
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from gatekeeper.errors import CatalogError, UnknownRuleError
from gatekeeper.models import Category, Finding, LineRange, Scope, Severity
from gatekeeper.rules.base import (
  ContentExclusion,
  MetricSpec,
  PathExclusion,
  PatternSpec,
  Rule,
  Threshold,
)
from gatekeeper.rules.metrics import list_metrics

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = "catalog.yaml"


def _flatten(value: Any) -> Any:
  """Flatten one level of nesting produced by YAML aliases in flow lists."""
  if not isinstance(value, list):
    return value
  flat: list[Any] = []
  for item in value:
    if isinstance(item, list):
      flat.extend(item)
    else:
      flat.append(item)
  return flat


class ThresholdEntry(BaseModel):
  """One metric tier as written in the catalog."""

  model_config = ConfigDict(extra="forbid", frozen=True)

  above: float
  severity: Severity


class RuleEntry(BaseModel):
  """Catalog schema for a single rule."""

  model_config = ConfigDict(extra="forbid", frozen=True)

  id: str = Field(pattern=r"^[A-Z0-9]+-\d{3}$")
  name: str = Field(min_length=1)
  category: Category
  severity: Severity
  scope: Scope
  message: str = Field(min_length=1)
  suggestion: str | None = None
  applies_to: tuple[str, ...] = ()
  exclude_paths: tuple[str, ...] = ()
  allow: tuple[str, ...] = ()
  patterns: tuple[str, ...] = ()
  ignore_case: bool = False
  metric: str | None = None
  thresholds: tuple[ThresholdEntry, ...] = ()

  @field_validator("applies_to", "exclude_paths", "allow", "patterns", mode="before")
  @classmethod
  def _flatten_aliases(cls, value: Any) -> Any:
    return _flatten(value)

  @field_validator("category")
  @classmethod
  def _known_category(cls, value: Category) -> Category:
    if value == Category.UNKNOWN:
      raise ValueError("'unknown' is reserved for rules that fail to evaluate")
    return value

  @model_validator(mode="after")
  def _check_matcher(self) -> "RuleEntry":
    if self.scope == Scope.FILE_METRIC:
      if not self.metric or not self.thresholds:
        raise ValueError("file-metric rules need 'metric' and 'thresholds'")
      if self.patterns or self.allow:
        raise ValueError("file-metric rules take no 'patterns' or 'allow'")
      bounds = [t.above for t in self.thresholds]
      if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
        raise ValueError("'thresholds' must be strictly ascending")
      if self.thresholds[0].severity != self.severity:
        raise ValueError("rule severity must equal the lowest threshold's severity")
    else:
      if not self.patterns:
        raise ValueError(f"{self.scope.value} rules need 'patterns'")
      if self.metric or self.thresholds:
        raise ValueError(f"{self.scope.value} rules take no 'metric' or 'thresholds'")
    return self

  def to_rule(self) -> Rule:
    matcher: PatternSpec | MetricSpec
    if self.scope == Scope.FILE_METRIC:
      matcher = MetricSpec(
        metric=self.metric or "",
        thresholds=tuple(Threshold(t.above, t.severity) for t in self.thresholds),
      )
    else:
      matcher = PatternSpec(patterns=self.patterns, ignore_case=self.ignore_case)

    exclusions: list[PathExclusion | ContentExclusion] = []
    if self.exclude_paths:
      exclusions.append(PathExclusion(self.exclude_paths))
    if self.allow:
      exclusions.append(ContentExclusion(self.allow, self.ignore_case))

    return Rule(
      id=self.id,
      name=self.name,
      category=self.category,
      severity=self.severity,
      scope=self.scope,
      message=self.message,
      matcher=matcher,
      applies_to=self.applies_to,
      exclusions=tuple(exclusions),
      suggestion=self.suggestion,
    )


class CatalogFile(BaseModel):
  """Top-level catalog document."""

  model_config = ConfigDict(extra="forbid")

  version: str = Field(min_length=1)
  definitions: dict[str, Any] = Field(default_factory=dict)
  rules: list[dict[str, Any]]


class RuleCatalog:
  """Immutable, id-keyed table of review rules."""

  def __init__(self, rules: Iterable[Rule], version: str = ""):
    table: dict[str, Rule] = {}
    for rule in sorted(rules, key=lambda r: r.id):
      if rule.id in table:
        raise CatalogError(f"Duplicate rule id: {rule.id}")
      table[rule.id] = rule
    self._rules = MappingProxyType(table)
    self._version = version

  @property
  def version(self) -> str:
    return self._version

  @property
  def rules(self) -> tuple[Rule, ...]:
    return tuple(self._rules.values())

  def get(self, rule_id: str) -> Rule:
    try:
      return self._rules[rule_id]
    except KeyError:
      raise UnknownRuleError(f"Unknown rule id: {rule_id}") from None

  def __contains__(self, rule_id: object) -> bool:
    return rule_id in self._rules

  def __iter__(self) -> Iterator[Rule]:
    return iter(self._rules.values())

  def __len__(self) -> int:
    return len(self._rules)

  def categories(self) -> list[Category]:
    """Categories with at least one rule, in report order."""
    present = {rule.category for rule in self}
    return [c for c in Category if c in present]

  def by_category(self) -> dict[Category, list[Rule]]:
    grouped: dict[Category, list[Rule]] = {c: [] for c in self.categories()}
    for rule in self:
      grouped[rule.category].append(rule)
    return grouped

  def with_scope(self, scope: Scope) -> list[Rule]:
    return [rule for rule in self if rule.scope == scope]

  def finding(
    self,
    rule_id: str,
    file: str,
    line_range: LineRange | None,
    snippet: str = "",
    severity: Severity | None = None,
    message: str | None = None,
  ) -> Finding:
    """Build a Finding for a rule id, validating the id exists."""
    rule = self.get(rule_id)
    finding = rule.finding(file, line_range, snippet, severity)
    if message is not None:
      finding = Finding(
        rule_id=finding.rule_id,
        file=finding.file,
        line_range=finding.line_range,
        snippet=finding.snippet,
        severity=finding.severity,
        message=" ".join(message.split()),
      )
    return finding


def parse_catalog(data: Any) -> RuleCatalog:
  """Validate raw catalog data and build a RuleCatalog.

  Entries repeated verbatim are collapsed into one rule. Two entries that
  share an id but differ are a configuration error.

  Raises:
    CatalogError: If the data does not describe a valid catalog.
  """
  if not isinstance(data, dict):
    raise CatalogError("Catalog must be a mapping with 'version' and 'rules'")

  try:
    document = CatalogFile(**data)
  except ValidationError as e:
    raise CatalogError(f"Invalid catalog: {e}") from e

  entries: dict[str, RuleEntry] = {}
  known_metrics = set(list_metrics())

  for index, raw in enumerate(document.rules):
    try:
      entry = RuleEntry(**raw)
    except ValidationError as e:
      rule_id = raw.get("id", f"#{index}") if isinstance(raw, dict) else f"#{index}"
      raise CatalogError(f"Invalid rule {rule_id}: {e}") from e

    if entry.metric is not None and entry.metric not in known_metrics:
      raise CatalogError(f"Rule {entry.id} uses unknown metric '{entry.metric}'")

    existing = entries.get(entry.id)
    if existing is None:
      entries[entry.id] = entry
    elif existing == entry:
      logger.debug("Collapsed repeated catalog entry %s", entry.id)
    else:
      raise CatalogError(f"Rule id {entry.id} is defined twice with different content")

  return RuleCatalog((entry.to_rule() for entry in entries.values()), version=document.version)


def load_catalog(path: Path | None = None) -> RuleCatalog:
  """Load the bundled catalog, or a catalog file when path is given."""
  try:
    if path is None:
      text = resources.files("gatekeeper.rules").joinpath("data").joinpath(DEFAULT_CATALOG).read_text()
    else:
      text = Path(path).read_text()
  except OSError as e:
    raise CatalogError(f"Cannot read rule catalog: {e}") from e

  try:
    data = yaml.safe_load(text)
  except yaml.YAMLError as e:
    raise CatalogError(f"Rule catalog is not valid YAML: {e}") from e

  catalog = parse_catalog(data)
  logger.debug("Loaded rule catalog %s with %d rules", catalog.version, len(catalog))
  return catalog
