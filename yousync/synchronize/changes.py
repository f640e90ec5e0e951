"""Detects field-level drift between source issues and their last synchronized snapshot."""

from typing import Any

import structlog

from yousync.synchronize.mapping import STATE_TO_RESOLVED, FieldMappingPolicy
from yousync.synchronize.models import CorrespondenceRecord, DestinationIssueFields, IssueSnapshot, SourceIssue, SyncDecision
from yousync.synchronize.utils import compare_field, compare_label_sets

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DIFFED_FIELDS = ("title", "body", "state", "labels")


async def detect_changes(snapshot: IssueSnapshot, current: SourceIssue) -> dict[str, Any]:
    """Return the fields of the current source issue that differ from the snapshot.

    Keys are source field names and values are the current values. Labels are
    compared as sets; every other field is compared by exact value. An empty
    result means no update is needed.
    """
    changes: dict[str, Any] = {}
    for field in DIFFED_FIELDS:
        snapshot_value = getattr(snapshot, field)
        current_value = getattr(current, field)
        if field == "labels":
            decision = await compare_label_sets(snapshot_value, current_value)
        else:
            decision = await compare_field(snapshot_value, current_value)
        if decision == SyncDecision.UPDATE:
            changes[field] = list(current_value) if field == "labels" else current_value
    return changes


async def decide_sync_action(current: SourceIssue, record: CorrespondenceRecord | None) -> tuple[SyncDecision, dict[str, Any]]:
    """Compare a source issue with its correspondence record, and decide whether to create, update, or no-op."""
    if record is None:
        logger.info("Issue has no destination counterpart", source_issue_number=current.number, source_issue_id=current.id)
        return SyncDecision.CREATE, {}

    changes = await detect_changes(record.snapshot, current)
    if changes:
        logger.info(
            "Issue needs to be updated",
            source_issue_number=current.number,
            destination_issue_id=record.destination_issue_id,
            changed_fields=sorted(changes),
        )
        return SyncDecision.UPDATE, changes

    logger.debug("Issue is up to date", source_issue_number=current.number, destination_issue_id=record.destination_issue_id)
    return SyncDecision.NOOP, {}


def build_create_fields(issue: SourceIssue, policy: FieldMappingPolicy) -> DestinationIssueFields:
    """Map every diffed source field onto a destination field set for issue creation."""
    return DestinationIssueFields(
        summary=issue.title,
        description=issue.body,
        include_description=True,
        resolved=STATE_TO_RESOLVED[issue.state],
        state_name=policy.state_name_for(issue.state, issue.state_reason),
        tags_to_add=list(issue.labels),
    )


def build_update_fields(
    changes: dict[str, Any],
    snapshot: IssueSnapshot,
    current: SourceIssue,
    policy: FieldMappingPolicy,
) -> DestinationIssueFields:
    """Map only the changed source fields onto destination fields.

    Tags are reconciled against the labels recorded in the snapshot: only labels
    this engine applied previously are detached, so tags added directly in the
    destination are preserved.
    """
    fields = DestinationIssueFields()
    if "title" in changes:
        fields.summary = changes["title"]
    if "body" in changes:
        fields.description = changes["body"]
        fields.include_description = True
    if "state" in changes:
        fields.resolved = STATE_TO_RESOLVED[changes["state"]]
        fields.state_name = policy.state_name_for(changes["state"], current.state_reason)
    if "labels" in changes:
        new_labels = changes["labels"]
        previous_labels = set(snapshot.labels)
        fields.tags_to_add = [label for label in new_labels if label not in previous_labels]
        fields.tags_to_remove = [label for label in snapshot.labels if label not in set(new_labels)]
    return fields
