"""Output formatting."""

from gatekeeper.output.formatter import (
  GitHubFormatter,
  JsonFormatter,
  MarkdownFormatter,
  OutputFormatter,
  TerminalFormatter,
  get_formatter,
)
from gatekeeper.output.parser import ReportParseError, parse_findings

__all__ = [
  "GitHubFormatter",
  "JsonFormatter",
  "MarkdownFormatter",
  "OutputFormatter",
  "ReportParseError",
  "TerminalFormatter",
  "get_formatter",
  "parse_findings",
]
