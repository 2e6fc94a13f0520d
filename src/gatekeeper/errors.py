"""Exception hierarchy shared across the review pipeline."""


class GatekeeperError(Exception):
  """Base class for all gatekeeper errors."""


class IngestionError(GatekeeperError):
  """Change-set or check data could not be obtained. Fatal to the run."""


class NotFoundError(IngestionError):
  """Pull request does not exist."""


class MalformedDiffError(IngestionError):
  """Diff text could not be parsed."""

  def __init__(self, message: str, line_number: int | None = None):
    if line_number is not None:
      message = f"{message} (diff line {line_number})"
    super().__init__(message)
    self.line_number = line_number


class CatalogError(GatekeeperError):
  """Rule catalog data is malformed."""


class UnknownRuleError(CatalogError):
  """A finding referenced a rule id the catalog does not define."""


class ConfigError(GatekeeperError):
  """Settings file is invalid."""


class RuleEvaluationError(GatekeeperError):
  """A single rule failed while being evaluated."""

  def __init__(self, rule_id: str, cause: Exception):
    super().__init__(f"Rule {rule_id} failed: {cause}")
    self.rule_id = rule_id
    self.cause = cause


class ReviewCancelled(GatekeeperError):
  """The run was cancelled before a verdict was reached."""


class PublishError(GatekeeperError):
  """Rendered report could not be handed to the hosting service."""
