"""Synchronous driver for configuration reconciliation for the CLI entry point."""

import asyncio
from pathlib import Path

from yousync.configuration import reconcile
from yousync.configuration.models import SyncConfig
from yousync.configuration.reconcile import CredentialPrompt


def get_sync_config(
    owner: str,
    repo: str,
    youtrack_url: str,
    project_query: str,
    debug: bool = False,
    github_api_url: str | None = None,
    github_token: str | None = None,
    youtrack_token: str | None = None,
    state_dir: Path | None = None,
    max_concurrency: int | None = None,
    prompt: CredentialPrompt | None = None,
    require_github_token: bool = True,
) -> SyncConfig:
    """Synchronously get the reconciled sync configuration."""
    return asyncio.run(
        reconcile.reconcile_sync_configuration(
            cli_owner=owner,
            cli_repo=repo,
            cli_youtrack_url=youtrack_url,
            cli_project_query=project_query,
            cli_debug=debug,
            cli_github_api_url=github_api_url,
            cli_github_token=github_token,
            cli_youtrack_token=youtrack_token,
            cli_state_dir=state_dir,
            cli_max_concurrency=max_concurrency,
            prompt=prompt,
            require_github_token=require_github_token,
        )
    )
