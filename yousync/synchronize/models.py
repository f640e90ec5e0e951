"""Internal data models shared by the synchronization engine and its adapters."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncDecision(Enum):
    """Enum for sync decisions."""

    CREATE = "create"
    UPDATE = "update"
    NOOP = "noop"


class SyncOutcome(str, Enum):
    """Enum for the per-issue outcome of a run."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class IssueState(str, Enum):
    """Lifecycle state of a source issue."""

    OPEN = "open"
    CLOSED = "closed"


class SourceIssue(BaseModel):
    """An issue as read from the source tracker."""

    id: int
    number: int
    title: str
    body: str | None = None
    state: IssueState
    state_reason: str | None = None
    labels: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None


class IssueSnapshot(BaseModel):
    """The subset of source issue fields that participate in diffing."""

    title: str
    body: str | None = None
    state: IssueState
    labels: list[str] = Field(default_factory=list)

    @classmethod
    def from_source_issue(cls, issue: SourceIssue) -> "IssueSnapshot":
        """Capture the diffable fields of a source issue."""
        return cls(title=issue.title, body=issue.body, state=issue.state, labels=list(issue.labels))


class CorrespondenceRecord(BaseModel):
    """Durable association between a source issue and its destination issue."""

    source_issue_id: int
    destination_issue_id: str
    snapshot: IssueSnapshot
    synced_at: datetime


class DestinationIssueFields(BaseModel):
    """Destination field values to send to the destination writer.

    Fields left as None (or empty tag lists) are not sent.
    """

    summary: str | None = None
    description: str | None = None
    resolved: bool | None = None
    state_name: str | None = None
    tags_to_add: list[str] = Field(default_factory=list)
    tags_to_remove: list[str] = Field(default_factory=list)
    include_description: bool = False

    def has_issue_fields(self) -> bool:
        """Return whether any field other than tags needs to be written."""
        return self.summary is not None or self.include_description or self.state_name is not None

    def has_tag_changes(self) -> bool:
        """Return whether any tag needs to be attached or detached."""
        return bool(self.tags_to_add or self.tags_to_remove)


class DestinationIssueRef(BaseModel):
    """Identifiers of a destination issue returned on creation."""

    id: str
    id_readable: str | None = None


class DestinationProject(BaseModel):
    """A resolved destination project."""

    id: str
    name: str
    short_name: str | None = None
