"""In-memory trackers used to exercise the synchronization engine."""

import asyncio
from typing import Any

from yousync.github.abc import SourceReaderBase
from yousync.synchronize.models import DestinationIssueFields, DestinationIssueRef, DestinationProject, IssueState, SourceIssue
from yousync.youtrack.abc import DestinationWriterBase, ProjectResolverBase

DEMO_PROJECT = DestinationProject(id="0-1", name="Demo", short_name="DEMO")


def make_source_issue(
    number: int,
    title: str | None = None,
    body: str | None = "Body",
    state: IssueState = IssueState.OPEN,
    labels: list[str] | None = None,
    state_reason: str | None = None,
) -> SourceIssue:
    """Build a source issue whose id is derived from its number."""
    return SourceIssue(
        id=1000 + number,
        number=number,
        title=title if title is not None else f"Issue {number}",
        body=body,
        state=state,
        state_reason=state_reason,
        labels=labels or [],
    )


class FakeSourceReader(SourceReaderBase):
    """Returns a fixed issue list, as a complete GitHub listing would."""

    def __init__(self, issues: list[SourceIssue], error: Exception | None = None) -> None:
        self.issues = issues
        self.error = error

    async def list_issues(self) -> list[SourceIssue]:
        if self.error is not None:
            raise self.error
        return [issue.model_copy(deep=True) for issue in self.issues]


class FakeProjectResolver(ProjectResolverBase):
    """Resolves every query to one project, or fails with a fixed error."""

    def __init__(self, project: DestinationProject = DEMO_PROJECT, error: Exception | None = None) -> None:
        self.project = project
        self.error = error
        self.queries: list[str] = []

    async def resolve_project(self, query: str) -> DestinationProject:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.project


class FakeDestinationWriter(DestinationWriterBase):
    """Keeps destination issues in memory and applies field sets the way YouTrack would."""

    def __init__(self, delay: float = 0.0) -> None:
        self.issues: dict[str, dict[str, Any]] = {}
        self.create_calls: list[DestinationIssueFields] = []
        self.update_calls: list[tuple[str, DestinationIssueFields]] = []
        # Keyed by summary for creation and by destination issue id for updates
        self.create_failures: dict[str, Exception] = {}
        self.update_failures: dict[str, Exception] = {}
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_number = 1

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)

    async def create_issue(self, project: DestinationProject, fields: DestinationIssueFields) -> DestinationIssueRef:
        await self._enter()
        try:
            self.create_calls.append(fields)
            error = self.create_failures.get(fields.summary or "")
            if error is not None:
                raise error
            number = self._next_number
            self._next_number += 1
            issue_id = f"2-{number}"
            self.issues[issue_id] = {
                "project": project.id,
                "summary": fields.summary,
                "description": fields.description,
                "resolved": fields.resolved,
                "state": fields.state_name,
                "tags": list(fields.tags_to_add),
            }
            return DestinationIssueRef(id=issue_id, id_readable=f"{project.short_name}-{number}")
        finally:
            self.in_flight -= 1

    async def update_issue(self, issue_id: str, fields: DestinationIssueFields) -> None:
        await self._enter()
        try:
            self.update_calls.append((issue_id, fields))
            error = self.update_failures.get(issue_id)
            if error is not None:
                raise error
            issue = self.issues[issue_id]
            if fields.summary is not None:
                issue["summary"] = fields.summary
            if fields.include_description:
                issue["description"] = fields.description
            if fields.state_name is not None:
                issue["state"] = fields.state_name
                issue["resolved"] = fields.resolved
            for tag in fields.tags_to_add:
                if tag not in issue["tags"]:
                    issue["tags"].append(tag)
            for tag in fields.tags_to_remove:
                if tag in issue["tags"]:
                    issue["tags"].remove(tag)
        finally:
            self.in_flight -= 1
