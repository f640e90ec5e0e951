"""Reconciles configuration between CLI arguments, environment variables and interactive prompts."""

from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

import structlog

from yousync.configuration.env import Settings
from yousync.configuration.exceptions import InvalidConfigurationElementError, RequiredConfigurationElementError
from yousync.configuration.models import SyncConfig
from yousync.synchronize.mapping import FieldMappingPolicy
from yousync.utils.github import split_repository_in_configuration

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

CredentialPrompt = Callable[[str], str]


async def resolve_credential(
    name: str,
    cli_value: str | None,
    env_value: str | None,
    cli_name: str,
    env_name: str,
    prompt: CredentialPrompt | None = None,
) -> str:
    """Resolve a credential from the command line, the environment, or an interactive prompt.

    Args:
        name (str): Human readable name of the credential, used as the prompt label.
        cli_value (str | None): Value given on the command line.
        env_value (str | None): Value found in the environment or .env file.
        cli_name (str): Name of the command line option.
        env_name (str): Name of the environment variable.
        prompt (CredentialPrompt | None): Asks the operator for the value; None disables prompting.

    Raises:
        RequiredConfigurationElementError: If the credential is missing and cannot be prompted for.

    Returns:
        str: The credential.
    """
    if cli_value:
        return cli_value
    if env_value:
        return env_value
    if prompt is None:
        raise RequiredConfigurationElementError(name, cli_name, env_name)

    logger.info("Credential not found in the environment, prompting", credential=name, env_name=env_name)
    value = prompt(name).strip()
    if not value:
        raise RequiredConfigurationElementError(name, cli_name, env_name)
    return value


async def validate_youtrack_url(youtrack_url: str) -> str:
    """Validate that the YouTrack host is an absolute http(s) URL and return it without a trailing slash."""
    parsed = urlparse(youtrack_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidConfigurationElementError("YouTrack URL", youtrack_url, "expected an absolute http(s) URL")
    return youtrack_url.rstrip("/")


async def reconcile_sync_configuration(
    cli_owner: str,
    cli_repo: str,
    cli_youtrack_url: str,
    cli_project_query: str,
    cli_debug: bool = False,
    cli_github_api_url: str | None = None,
    cli_github_token: str | None = None,
    cli_youtrack_token: str | None = None,
    cli_state_dir: Path | None = None,
    cli_max_concurrency: int | None = None,
    settings: Settings | None = None,
    prompt: CredentialPrompt | None = None,
    require_github_token: bool = True,
) -> SyncConfig:
    """Reconcile the sync command configuration.

    Command line values take precedence over environment values. Missing tokens are
    requested through `prompt` before any API call is made. Commands that never read
    from GitHub pass `require_github_token=False`.
    """
    settings = settings or Settings()

    owner, repo = await split_repository_in_configuration(f"{cli_owner}/{cli_repo}")
    youtrack_url = await validate_youtrack_url(cli_youtrack_url)

    max_concurrency = cli_max_concurrency if cli_max_concurrency is not None else settings.YOUSYNC_MAX_CONCURRENCY
    if max_concurrency < 1:
        raise InvalidConfigurationElementError("maximum concurrency", max_concurrency, "must be at least 1")

    if require_github_token:
        github_token = await resolve_credential(
            name="GitHub Token",
            cli_value=cli_github_token,
            env_value=settings.YOUSYNC_GITHUB_TOKEN,
            cli_name="--github-token",
            env_name="YOUSYNC_GITHUB_TOKEN",
            prompt=prompt,
        )
    else:
        github_token = cli_github_token or settings.YOUSYNC_GITHUB_TOKEN or ""
    youtrack_token = await resolve_credential(
        name="YouTrack Token",
        cli_value=cli_youtrack_token,
        env_value=settings.YOUSYNC_YOUTRACK_TOKEN,
        cli_name="--youtrack-token",
        env_name="YOUSYNC_YOUTRACK_TOKEN",
        prompt=prompt,
    )

    return SyncConfig(
        debug=cli_debug or settings.DEBUG,
        owner=owner,
        repo=repo,
        youtrack_url=youtrack_url,
        project_query=cli_project_query,
        github_api_url=cli_github_api_url or settings.GITHUB_API_URL,
        github_token=github_token,
        youtrack_token=youtrack_token,
        state_dir=cli_state_dir or settings.YOUSYNC_STATE_DIR,
        max_concurrency=max_concurrency,
        policy=FieldMappingPolicy(
            state_field_name=settings.YOUSYNC_STATE_FIELD,
            open_state_name=settings.YOUSYNC_OPEN_STATE,
            resolved_state_name=settings.YOUSYNC_RESOLVED_STATE,
        ),
    )
