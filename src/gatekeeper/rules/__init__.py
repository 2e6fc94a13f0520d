"""Rule catalog and pattern matching."""

from gatekeeper.rules.base import MetricSpec, PatternSpec, Rule, Threshold, path_matches
from gatekeeper.rules.catalog import RuleCatalog, load_catalog, parse_catalog
from gatekeeper.rules.matcher import MatchResult, PatternMatcher, evaluate_rules
from gatekeeper.rules.metrics import get_metric, list_metrics, register_metric

__all__ = [
  "MatchResult",
  "MetricSpec",
  "PatternMatcher",
  "PatternSpec",
  "Rule",
  "RuleCatalog",
  "Threshold",
  "evaluate_rules",
  "get_metric",
  "list_metrics",
  "load_catalog",
  "parse_catalog",
  "path_matches",
  "register_metric",
]
