"""Synchronizes source issues into a destination project.

One run resolves the destination project, reads the complete source issue set,
and then creates, updates or skips each issue independently. A failure on one
issue is recorded in the report and never stops the others; authentication
failures abort the run.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from yousync.github.abc import SourceReaderBase
from yousync.synchronize.changes import build_create_fields, build_update_fields, decide_sync_action
from yousync.synchronize.exceptions import (
    AuthenticationError,
    PartialCreationError,
    ProjectResolutionError,
    SourceReadError,
    StoreOpenError,
    StoreWriteError,
)
from yousync.synchronize.mapping import FieldMappingPolicy
from yousync.synchronize.models import CorrespondenceRecord, DestinationProject, IssueSnapshot, SourceIssue, SyncDecision, SyncOutcome
from yousync.synchronize.results import IssueSynchronizationResult, SyncReport
from yousync.synchronize.store import CorrespondenceStore
from yousync.utils.constants import DEFAULT_MAX_CONCURRENCY
from yousync.youtrack.abc import DestinationWriterBase, ProjectResolverBase

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

StoreFactory = Callable[[DestinationProject], Awaitable[CorrespondenceStore]]


def describe_failure(exc: Exception) -> str:
    """Render an exception as a one-line failure cause."""
    return f"{type(exc).__name__}: {exc}"


async def create_destination_issue(
    issue: SourceIssue,
    project: DestinationProject,
    store: CorrespondenceStore,
    destination_writer: DestinationWriterBase,
    policy: FieldMappingPolicy,
) -> IssueSynchronizationResult:
    """Create the destination counterpart of a source issue and record the correspondence.

    When the issue is created but its tags cannot all be applied, the
    correspondence is still recorded with only the applied labels in the snapshot,
    so the next run retries the tags instead of creating a second issue.
    """
    fields = build_create_fields(issue, policy)
    snapshot = IssueSnapshot.from_source_issue(issue)
    partial_failure: PartialCreationError | None = None
    try:
        destination_issue = await destination_writer.create_issue(project, fields)
        destination_issue_id = destination_issue.id
        logger.info(
            "Created destination issue",
            source_issue_number=issue.number,
            destination_issue_id=destination_issue.id,
            destination_issue_readable_id=destination_issue.id_readable,
        )
    except PartialCreationError as exc:
        partial_failure = exc
        destination_issue_id = exc.destination_issue_id
        snapshot.labels = list(exc.applied_labels)
        logger.error(
            "Destination issue created without all of its tags",
            source_issue_number=issue.number,
            destination_issue_id=destination_issue_id,
            error=str(exc.cause),
        )

    record = CorrespondenceRecord(
        source_issue_id=issue.id,
        destination_issue_id=destination_issue_id,
        snapshot=snapshot,
        synced_at=datetime.now(timezone.utc),
    )
    try:
        await store.put(record)
    except StoreWriteError as exc:
        logger.error(
            "Destination issue created but correspondence was not recorded",
            source_issue_number=issue.number,
            destination_issue_id=destination_issue_id,
            error=str(exc),
        )
        return IssueSynchronizationResult(
            issue,
            SyncOutcome.FAILED,
            destination_issue_id=destination_issue_id,
            error=(
                f"{describe_failure(exc)} (destination issue {destination_issue_id} was created, "
                "but the correspondence store was not updated; the destination is ahead of the recorded state)"
            ),
        )
    if partial_failure is not None:
        return IssueSynchronizationResult(
            issue,
            SyncOutcome.FAILED,
            destination_issue_id=destination_issue_id,
            error=f"{describe_failure(partial_failure.cause)} (destination issue {destination_issue_id} was created; missing tags are retried on the next run)",
        )
    return IssueSynchronizationResult(issue, SyncOutcome.CREATED, destination_issue_id=destination_issue_id)


async def update_destination_issue(
    issue: SourceIssue,
    record: CorrespondenceRecord,
    changes: dict[str, Any],
    store: CorrespondenceStore,
    destination_writer: DestinationWriterBase,
    policy: FieldMappingPolicy,
) -> IssueSynchronizationResult:
    """Propagate the changed fields of a source issue and refresh its snapshot."""
    changed_fields = sorted(changes)
    fields = build_update_fields(changes, record.snapshot, issue, policy)
    await destination_writer.update_issue(record.destination_issue_id, fields)
    logger.info(
        "Updated destination issue",
        source_issue_number=issue.number,
        destination_issue_id=record.destination_issue_id,
        changed_fields=changed_fields,
    )

    refreshed = CorrespondenceRecord(
        source_issue_id=issue.id,
        destination_issue_id=record.destination_issue_id,
        snapshot=IssueSnapshot.from_source_issue(issue),
        synced_at=datetime.now(timezone.utc),
    )
    try:
        await store.put(refreshed)
    except StoreWriteError as exc:
        logger.error(
            "Destination issue updated but snapshot was not recorded",
            source_issue_number=issue.number,
            destination_issue_id=record.destination_issue_id,
            error=str(exc),
        )
        return IssueSynchronizationResult(
            issue,
            SyncOutcome.FAILED,
            destination_issue_id=record.destination_issue_id,
            changed_fields=changed_fields,
            error=(
                f"{describe_failure(exc)} (destination issue {record.destination_issue_id} was updated, "
                "but the correspondence store was not updated; the destination is ahead of the recorded state)"
            ),
        )
    return IssueSynchronizationResult(
        issue,
        SyncOutcome.UPDATED,
        destination_issue_id=record.destination_issue_id,
        changed_fields=changed_fields,
    )


async def sync_issue(
    issue: SourceIssue,
    project: DestinationProject,
    store: CorrespondenceStore,
    destination_writer: DestinationWriterBase,
    policy: FieldMappingPolicy,
) -> IssueSynchronizationResult:
    """Decide whether to create, update, or skip one source issue, and apply the decision.

    Any failure other than an authentication failure is captured in the returned result.
    """
    try:
        record = await store.get(issue.id)
        decision, changes = await decide_sync_action(issue, record)
        if decision == SyncDecision.CREATE or record is None:
            return await create_destination_issue(issue, project, store, destination_writer, policy)
        if decision == SyncDecision.UPDATE:
            return await update_destination_issue(issue, record, changes, store, destination_writer, policy)
        return IssueSynchronizationResult(issue, SyncOutcome.UNCHANGED, destination_issue_id=record.destination_issue_id)
    except AuthenticationError:
        raise
    except Exception as exc:
        logger.error(
            "Failed to synchronize issue",
            source_issue_number=issue.number,
            source_issue_id=issue.id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return IssueSynchronizationResult(issue, SyncOutcome.FAILED, error=describe_failure(exc))


def deduplicate_issues(issues: list[SourceIssue]) -> list[SourceIssue]:
    """Keep the first occurrence of each source issue id.

    Pagination over a changing issue list can return the same issue twice; each
    source issue must be processed at most once per run.
    """
    seen: set[int] = set()
    unique: list[SourceIssue] = []
    for issue in issues:
        if issue.id in seen:
            logger.warning("Skipping duplicate source issue", source_issue_number=issue.number, source_issue_id=issue.id)
            continue
        seen.add(issue.id)
        unique.append(issue)
    return unique


async def run_sync(
    owner_repo: str,
    project_query: str,
    source_reader: SourceReaderBase,
    destination_writer: DestinationWriterBase,
    project_resolver: ProjectResolverBase,
    store_factory: StoreFactory,
    policy: FieldMappingPolicy | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> SyncReport:
    """Run one complete synchronization of a source repository into a destination project.

    Args:
        owner_repo: Source repository in 'owner/repo' format, used for reporting.
        project_query: Search query resolving the destination project.
        source_reader: Reads the full source issue set.
        destination_writer: Creates and updates destination issues.
        project_resolver: Resolves the destination project.
        store_factory: Opens the correspondence store scoped to the resolved project.
        policy: Field mapping policy; defaults to FieldMappingPolicy().
        max_concurrency: Maximum number of issues processed in parallel.

    Raises:
        AuthenticationError: If either tracker rejects its credentials.
        ProjectResolutionError: If the destination project cannot be resolved.
        StoreOpenError: If the correspondence store cannot be opened.
        SourceReadError: If the source issue set cannot be read.

    Returns:
        SyncReport: The per-issue outcomes of the run.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")
    policy = policy or FieldMappingPolicy()

    try:
        project = await project_resolver.resolve_project(project_query)
    except (AuthenticationError, ProjectResolutionError):
        raise
    except Exception as exc:
        raise ProjectResolutionError(f"Failed to resolve destination project '{project_query}': {describe_failure(exc)}") from exc
    logger.info("Resolved destination project", project_id=project.id, project_name=project.name, project_query=project_query)

    try:
        store = await store_factory(project)
    except StoreOpenError:
        raise
    except Exception as exc:
        raise StoreOpenError(f"Failed to open the correspondence store for project {project.id}: {describe_failure(exc)}") from exc

    start_time = time.time()
    logger.info("Fetching source issues", repo=owner_repo, start_time=start_time)
    try:
        issues = deduplicate_issues(await source_reader.list_issues())
    except AuthenticationError:
        raise
    except Exception as exc:
        raise SourceReadError(f"Failed to read the issues of {owner_repo}: {describe_failure(exc)}") from exc
    end_time = time.time()
    logger.info("Fetched source issues", repo=owner_repo, duration=round(end_time - start_time, 2), issue_count=len(issues))

    semaphore = asyncio.Semaphore(max_concurrency)
    abort = asyncio.Event()
    authentication_failures: list[AuthenticationError] = []

    async def bounded_sync_issue(issue: SourceIssue) -> IssueSynchronizationResult | None:
        # An authentication failure stops issues from starting; those in flight finish and commit.
        async with semaphore:
            if abort.is_set():
                return None
            try:
                return await sync_issue(issue, project, store, destination_writer, policy)
            except AuthenticationError as exc:
                authentication_failures.append(exc)
                abort.set()
                return None

    start_time = time.time()
    logger.info("Processing issues", start_time=start_time, max_concurrency=max_concurrency)
    async with asyncio.TaskGroup() as task_group:
        tasks = [task_group.create_task(bounded_sync_issue(issue)) for issue in issues]
    if authentication_failures:
        skipped = sum(1 for task in tasks if task.result() is None) - len(authentication_failures)
        logger.error("Aborting run after an authentication failure", skipped_issues=skipped, error=str(authentication_failures[0]))
        raise authentication_failures[0]
    results = [task.result() for task in tasks if task.result() is not None]

    report = SyncReport(project.id, results)
    end_time = time.time()
    logger.info(
        "Processed issues",
        start_time=start_time,
        end_time=end_time,
        duration=round(end_time - start_time, 2),
        created=report.created,
        updated=report.updated,
        unchanged=report.unchanged,
        failed=report.failed,
    )
    return report
