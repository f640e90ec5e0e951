"""Field mapping policy between GitHub issues and YouTrack issues."""

from dataclasses import dataclass, field

from yousync.synchronize.models import IssueState
from yousync.utils.constants import DEFAULT_OPEN_STATE_NAME, DEFAULT_RESOLVED_STATE_NAME, DEFAULT_STATE_FIELD_NAME

SOURCE_TO_DESTINATION_FIELDS: dict[str, str] = {
    "title": "summary",
    "body": "description",
    "state": "resolved",
    "labels": "tags",
}
"""Source field name to destination field name."""

STATE_TO_RESOLVED: dict[IssueState, bool] = {
    IssueState.OPEN: False,
    IssueState.CLOSED: True,
}
"""Source lifecycle state to destination resolved flag."""

DEFAULT_STATE_REASON_TO_RESOLVED_STATE: dict[str, str] = {
    "not_planned": "Won't fix",
    "duplicate": "Duplicate",
}
"""GitHub close reasons that map onto a more specific resolved YouTrack state."""


@dataclass(frozen=True)
class FieldMappingPolicy:
    """How the resolved flag is expressed through YouTrack's state custom field."""

    state_field_name: str = DEFAULT_STATE_FIELD_NAME
    open_state_name: str = DEFAULT_OPEN_STATE_NAME
    resolved_state_name: str = DEFAULT_RESOLVED_STATE_NAME
    state_reason_to_resolved_state: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STATE_REASON_TO_RESOLVED_STATE))

    def state_name_for(self, state: IssueState, state_reason: str | None = None) -> str:
        """Return the YouTrack state name for a source lifecycle state."""
        if not STATE_TO_RESOLVED[state]:
            return self.open_state_name
        if state_reason is not None:
            return self.state_reason_to_resolved_state.get(state_reason, self.resolved_state_name)
        return self.resolved_state_name
