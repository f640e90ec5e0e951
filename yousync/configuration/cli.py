"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from yousync.configuration.driver import get_sync_config
from yousync.configuration.exceptions import InvalidConfigurationElementError, RequiredConfigurationElementError
from yousync.configuration.models import SyncConfig
from yousync.synchronize.driver import list_correspondence_workflow, run_sync_workflow
from yousync.synchronize.exceptions import AuthenticationError, ProjectResolutionError, StoreOpenError, SynchronizationError
from yousync.synchronize.results import SyncReport

load_dotenv()

logger = structlog.get_logger(__name__)

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="A tool for synchronisation between GitHub and YouTrack.")

OwnerArgument = Annotated[str, Argument(help="Owner of the GitHub repository.")]
RepoArgument = Annotated[str, Argument(help="Name of the GitHub repository.")]
YouTrackArgument = Annotated[str, Argument(help="YouTrack host URL.")]
ProjectArgument = Annotated[str, Argument(help="YouTrack project name (search query).")]
StateDirOption = Annotated[Path | None, Option(help="Directory holding the correspondence stores.")]
DebugOption = Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")]


def configure_logging(debug: bool) -> None:
    """Configure structlog to write key-value logs to stderr, leaving stdout for the report."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def prompt_for_credential(name: str) -> str:
    """Ask the operator for a credential without echoing it."""
    return typer.prompt(name, hide_input=True)


def load_config(
    owner: str,
    repo: str,
    youtrack_url: str,
    project_query: str,
    debug: bool,
    state_dir: Path | None,
    github_api_url: str | None = None,
    max_concurrency: int | None = None,
    require_github_token: bool = True,
) -> SyncConfig:
    """Reconcile configuration, reporting configuration errors and exiting non-zero."""
    try:
        return get_sync_config(
            owner=owner,
            repo=repo,
            youtrack_url=youtrack_url,
            project_query=project_query,
            debug=debug,
            github_api_url=github_api_url,
            state_dir=state_dir,
            max_concurrency=max_concurrency,
            prompt=prompt_for_credential,
            require_github_token=require_github_token,
        )
    except (RequiredConfigurationElementError, InvalidConfigurationElementError, ValueError) as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1) from exc


def echo_report(report: SyncReport) -> None:
    """Print the summary of a run and the cause of every failed issue."""
    typer.echo("")
    typer.echo("=" * 70)
    typer.echo("SYNCHRONIZATION SUMMARY")
    typer.echo("=" * 70)
    typer.echo(f"YouTrack project: {report.project_id}")
    typer.echo(f"  Issues created: {report.created}")
    typer.echo(f"  Issues updated: {report.updated}")
    typer.echo(f"  Issues unchanged: {report.unchanged}")
    typer.echo(f"  Issues failed: {report.failed}")
    if report.failures:
        typer.echo("")
        typer.echo("Failures:")
        for failure in report.failures:
            typer.echo(f"  - #{failure.source_issue.number} '{failure.source_issue.title}': {failure.error}")
    typer.echo("=" * 70)


def run_once(config: SyncConfig, keep_going: bool = False) -> bool:
    """Run one synchronization and print its report.

    Returns whether the run was clean. Authentication failures always exit
    non-zero. Other run failures exit non-zero too, unless keep_going is set, in
    which case they are reported and the run counts as not clean.
    """
    try:
        report = asyncio.run(run_sync_workflow(config))
    except AuthenticationError as exc:
        typer.echo(f"Authentication failed: {exc}", err=True)
        raise typer.Exit(1) from exc
    except SynchronizationError as exc:
        label = "Project resolution failed" if isinstance(exc, ProjectResolutionError) else "Synchronization failed"
        typer.echo(f"{label}: {exc}", err=True)
        if not keep_going:
            raise typer.Exit(1) from exc
        logger.error("Run failed, retrying at the next interval", error_type=type(exc).__name__, error=str(exc))
        return False
    echo_report(report)
    return report.is_clean


@typer_app.command(name="sync")
def sync_cli(
    owner: OwnerArgument,
    repo: RepoArgument,
    youtrack_url: YouTrackArgument,
    project_query: ProjectArgument,
    github_api_url: Annotated[str | None, Option(help="GitHub API URL, for GitHub Enterprise Server.")] = None,
    state_dir: StateDirOption = None,
    max_concurrency: Annotated[int | None, Option(help="Maximum number of issues synchronized in parallel.")] = None,
    watch: Annotated[float | None, Option(help="Repeat the synchronization every N seconds until interrupted.")] = None,
    debug: DebugOption = False,
) -> None:
    """Synchronize the issues of a GitHub repository into a YouTrack project.

    Tokens are read from YOUSYNC_GITHUB_TOKEN and YOUSYNC_YOUTRACK_TOKEN, and
    prompted for when missing.
    """
    configure_logging(debug)
    config = load_config(owner, repo, youtrack_url, project_query, debug, state_dir, github_api_url, max_concurrency)
    configure_logging(config.debug)

    if watch is None:
        clean = run_once(config)
        raise typer.Exit(0 if clean else 1)

    if watch <= 0:
        typer.echo("Configuration error: --watch must be a positive number of seconds", err=True)
        raise typer.Exit(1)

    typer.echo(f"Sync active, repeating every {watch} seconds (Ctrl+C to stop)")
    clean = True
    try:
        while True:
            clean = run_once(config, keep_going=True)
            time.sleep(watch)
    except KeyboardInterrupt:
        typer.echo("Sync stopped")
    raise typer.Exit(0 if clean else 1)


@typer_app.command(name="mappings")
def mappings_cli(
    owner: OwnerArgument,
    repo: RepoArgument,
    youtrack_url: YouTrackArgument,
    project_query: ProjectArgument,
    state_dir: StateDirOption = None,
    debug: DebugOption = False,
) -> None:
    """List the recorded correspondence between GitHub issues and YouTrack issues."""
    configure_logging(debug)
    config = load_config(owner, repo, youtrack_url, project_query, debug, state_dir, require_github_token=False)

    try:
        project, records = asyncio.run(list_correspondence_workflow(config))
    except AuthenticationError as exc:
        typer.echo(f"Authentication failed: {exc}", err=True)
        raise typer.Exit(1) from exc
    except ProjectResolutionError as exc:
        typer.echo(f"Project resolution failed: {exc}", err=True)
        raise typer.Exit(1) from exc
    except StoreOpenError as exc:
        typer.echo(f"Correspondence store unreadable: {exc}", err=True)
        raise typer.Exit(1) from exc

    typer.echo(f"{len(records)} correspondence record(s) for {config.owner_repo} -> {project.name} ({project.id})")
    for record in records:
        snapshot = record.snapshot
        typer.echo(
            f"  {record.source_issue_id} -> {record.destination_issue_id} [{snapshot.state.value}] "
            f"{snapshot.title} (synced {record.synced_at.isoformat()})"
        )


if __name__ == "__main__":
    typer_app()
