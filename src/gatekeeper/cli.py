"""CLI interface using Typer."""

import logging
import os
import threading
import traceback
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from gatekeeper import __version__
from gatekeeper.config import load_config
from gatekeeper.errors import (
  CatalogError,
  ConfigError,
  GatekeeperError,
  IngestionError,
  MalformedDiffError,
  PublishError,
  ReviewCancelled,
)
from gatekeeper.gateway import GitGateway, GitHubGateway, LocalGateway, VCSGateway
from gatekeeper.models import Verdict
from gatekeeper.output import MarkdownFormatter, TerminalFormatter, get_formatter
from gatekeeper.review import ReviewOrchestrator
from gatekeeper.rules import load_catalog

app = typer.Typer(
  name="gatekeeper",
  help="Deterministic review decisions for pull requests",
  no_args_is_help=False,
)

console = Console()
err_console = Console(stderr=True)

EXIT_BLOCKED = 1
EXIT_INGESTION = 2
EXIT_MALFORMED_DIFF = 3
EXIT_MISCONFIGURED = 4
EXIT_PUBLISH_FAILED = 5
EXIT_CANCELLED = 130


def _is_debug() -> bool:
  return os.environ.get("GATEKEEPER_DEBUG", "").lower() in ("1", "true", "yes")


def configure_logging(debug: bool) -> None:
  """Send package logs to stderr through rich."""
  logger = logging.getLogger("gatekeeper")
  for handler in list(logger.handlers):
    logger.removeHandler(handler)
  logger.addHandler(RichHandler(console=err_console, show_path=False, show_time=debug))
  logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def version_callback(value: bool) -> None:
  if value:
    console.print(f"gatekeeper {__version__}")
    raise typer.Exit()


def _exit_code_for(error: GatekeeperError) -> int:
  if isinstance(error, MalformedDiffError):
    return EXIT_MALFORMED_DIFF
  if isinstance(error, (CatalogError, ConfigError)):
    return EXIT_MISCONFIGURED
  if isinstance(error, PublishError):
    return EXIT_PUBLISH_FAILED
  if isinstance(error, ReviewCancelled):
    return EXIT_CANCELLED
  if isinstance(error, IngestionError):
    return EXIT_INGESTION
  return 1


def _describe(error: GatekeeperError) -> str:
  if isinstance(error, MalformedDiffError):
    return f"Malformed diff: {error}"
  if isinstance(error, CatalogError):
    return f"Catalog misconfiguration: {error}"
  if isinstance(error, ConfigError):
    return f"Invalid configuration: {error}"
  return str(error)


def _build_gateway(
  repo: Optional[str],
  diff: Optional[Path],
  git: bool,
  base: str,
  description: str,
  checks: Optional[Path],
  output: Optional[Path],
) -> VCSGateway:
  sources = [bool(repo), diff is not None, git]
  if sum(sources) != 1:
    raise typer.BadParameter("Specify exactly one of --repo, --diff or --git")
  if diff is not None:
    return LocalGateway(diff, description=description, checks_path=checks, output_path=output)
  if git:
    return GitGateway(base=base, checks_path=checks, output_path=output)
  try:
    return GitHubGateway(repo or "")
  except ValueError as e:
    raise typer.BadParameter(str(e), param_hint="--repo") from None


def _print_rules(catalog_path: Optional[Path]) -> None:
  catalog = load_catalog(catalog_path)
  table = Table(show_header=True, header_style="bold", title=f"Rule catalog {catalog.version}")
  table.add_column("Rule", width=10)
  table.add_column("Category", width=18)
  table.add_column("Severity", width=9)
  table.add_column("Scope", width=16)
  table.add_column("Name")
  for category, rules in catalog.by_category().items():
    for rule in rules:
      table.add_row(rule.id, category.value, rule.severity.value, rule.scope.value, rule.name)
  console.print(table)


@app.command()
def main(
  pr_id: Optional[str] = typer.Argument(
    None,
    help="Pull request number (--repo) or branch name (--git)",
  ),
  repo: str = typer.Option(None, "--repo", "-r", help="GitHub repository as owner/name"),
  diff: Path = typer.Option(None, "--diff", help="Review a unified diff file"),
  git: bool = typer.Option(False, "--git", help="Review a local branch against --base"),
  base: str = typer.Option("main", "--base", help="Base branch for --git"),
  description: str = typer.Option("", "--description", help="Pull request description for --diff"),
  checks: Path = typer.Option(None, "--checks", help="YAML file with CI check states"),
  format_type: str = typer.Option(
    None, "--format", help="Output format: markdown, json, terminal, github"
  ),
  config: Path = typer.Option(None, "--config", "-c", help="Config file path"),
  warning_threshold: int = typer.Option(
    None, "--warning-threshold", min=0, help="Warnings tolerated before requesting changes"
  ),
  publish: bool = typer.Option(False, "--publish", help="Publish the Markdown report"),
  output: Path = typer.Option(None, "--output", "-o", help="Publish target for --diff and --git"),
  exit_code: bool = typer.Option(
    False, "--exit-code", help="Exit 1 when the verdict is not Approve"
  ),
  list_rules: bool = typer.Option(False, "--list-rules", help="List catalog rules and exit"),
  debug: bool = typer.Option(False, "--debug", "-d", help="Verbose logs and full tracebacks"),
  version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
) -> None:
  """Review a pull request against the rule catalog and print a verdict.

  Exactly one source is required: --repo for GitHub, --diff for a diff
  file, or --git for a local branch.
  """
  show_traceback = debug or _is_debug()
  configure_logging(show_traceback)
  cancel_event = threading.Event()

  try:
    settings = load_config(config)
    if warning_threshold is not None:
      settings = settings.model_copy(update={"warning_threshold": warning_threshold})

    if list_rules:
      _print_rules(settings.catalog_path)
      return

    formatter = get_formatter(format_type or settings.format)
    if isinstance(formatter, TerminalFormatter):
      formatter.console = console

    if pr_id is None:
      if diff is None:
        raise typer.BadParameter("PR_ID is required with --repo and --git", param_hint="PR_ID")
      pr_id = diff.name

    gateway = _build_gateway(repo, diff, git, base, description, checks, output)
    with gateway:
      orchestrator = ReviewOrchestrator(gateway, settings)
      report = orchestrator.run(pr_id, cancel_event)

      rendered = formatter.format(report)
      if rendered:
        typer.echo(rendered.rstrip("\n"))

      if publish:
        orchestrator.publish(pr_id, report, MarkdownFormatter())

  except GatekeeperError as e:
    err_console.print(f"[red]Error:[/red] {_describe(e)}", highlight=False, soft_wrap=True)
    if show_traceback:
      err_console.print(traceback.format_exc(), markup=False)
    raise typer.Exit(_exit_code_for(e)) from None
  except KeyboardInterrupt:
    cancel_event.set()
    err_console.print("[yellow]Review cancelled[/yellow]")
    raise typer.Exit(EXIT_CANCELLED) from None
  except ValueError as e:
    err_console.print(f"[red]Error:[/red] {e}", highlight=False, soft_wrap=True)
    raise typer.Exit(EXIT_INGESTION) from None

  if exit_code and report.verdict != Verdict.APPROVE:
    raise typer.Exit(EXIT_BLOCKED)


if __name__ == "__main__":
  app()
