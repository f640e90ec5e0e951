"""Contains results of application execution."""

from yousync.synchronize.models import SourceIssue, SyncOutcome


class IssueSynchronizationResult:
    """Contains the outcome of synchronizing a single source issue."""

    def __init__(
        self,
        source_issue: SourceIssue,
        outcome: SyncOutcome,
        destination_issue_id: str | None = None,
        changed_fields: list[str] | None = None,
        error: str | None = None,
    ) -> None:
        """Initialize the result with the source issue, its outcome, and the failure cause if any."""
        self.source_issue = source_issue
        self.outcome = outcome
        self.destination_issue_id = destination_issue_id
        self.changed_fields = changed_fields or []
        self.error = error


class SyncReport:
    """Contains results of one synchronization run for all source issues."""

    def __init__(self, project_id: str, results: list[IssueSynchronizationResult]) -> None:
        """Initialize the report with the resolved project and the per-issue results."""
        self.project_id = project_id
        self.results = results

    def _count(self, outcome: SyncOutcome) -> int:
        return sum(1 for result in self.results if result.outcome == outcome)

    @property
    def created(self) -> int:
        return self._count(SyncOutcome.CREATED)

    @property
    def updated(self) -> int:
        return self._count(SyncOutcome.UPDATED)

    @property
    def unchanged(self) -> int:
        return self._count(SyncOutcome.UNCHANGED)

    @property
    def failed(self) -> int:
        return self._count(SyncOutcome.FAILED)

    @property
    def failures(self) -> list[IssueSynchronizationResult]:
        """Results of the issues that failed, with their causes."""
        return [result for result in self.results if result.outcome == SyncOutcome.FAILED]

    @property
    def is_clean(self) -> bool:
        """Whether the run completed with zero failed issues."""
        return self.failed == 0
