"""Orchestrates the synchronization of GitHub issues into YouTrack."""

import time
from pathlib import Path

import structlog

from yousync.configuration.models import SyncConfig
from yousync.github.adapter import GitHubKitAdapter
from yousync.synchronize.engine import run_sync
from yousync.synchronize.models import CorrespondenceRecord, DestinationProject
from yousync.synchronize.results import SyncReport
from yousync.synchronize.store import JsonLinesCorrespondenceStore
from yousync.utils.helpers import generate_store_file_name
from yousync.youtrack.adapter import YouTrackAdapter

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def get_store_path(config: SyncConfig, project: DestinationProject) -> Path:
    """Return the correspondence store path for the configured repository and a resolved project."""
    return config.state_dir / generate_store_file_name(config.owner, config.repo, config.youtrack_url, project.id)


async def open_store(config: SyncConfig, project: DestinationProject) -> JsonLinesCorrespondenceStore:
    """Open the correspondence store scoped to the configured repository and a resolved project."""
    return await JsonLinesCorrespondenceStore.open(get_store_path(config, project))


async def run_sync_workflow(config: SyncConfig) -> SyncReport:
    """Run the sync workflow: build both adapters, then synchronize every GitHub issue into YouTrack."""
    github_adapter = await GitHubKitAdapter.create(
        repo=config.owner_repo,
        github_token=config.github_token,
        github_api_url=config.github_api_url,
    )
    youtrack_adapter = await YouTrackAdapter.create(
        youtrack_url=config.youtrack_url,
        youtrack_token=config.youtrack_token,
        policy=config.policy,
    )

    async def store_factory(project: DestinationProject) -> JsonLinesCorrespondenceStore:
        return await open_store(config, project)

    start_time = time.time()
    logger.info("Starting synchronization", repo=config.owner_repo, youtrack_url=config.youtrack_url, project_query=config.project_query)
    async with youtrack_adapter:
        report = await run_sync(
            config.owner_repo,
            config.project_query,
            source_reader=github_adapter,
            destination_writer=youtrack_adapter,
            project_resolver=youtrack_adapter,
            store_factory=store_factory,
            policy=config.policy,
            max_concurrency=config.max_concurrency,
        )
    end_time = time.time()
    logger.info("Finished synchronization", repo=config.owner_repo, duration=round(end_time - start_time, 2), clean=report.is_clean)
    return report


async def list_correspondence_workflow(config: SyncConfig) -> tuple[DestinationProject, list[CorrespondenceRecord]]:
    """Resolve the configured project and list the correspondence records recorded for it."""
    youtrack_adapter = await YouTrackAdapter.create(
        youtrack_url=config.youtrack_url,
        youtrack_token=config.youtrack_token,
        policy=config.policy,
    )
    async with youtrack_adapter:
        project = await youtrack_adapter.resolve_project(config.project_query)
    store = await open_store(config, project)
    return project, await store.list()
