"""Base ABCs for destination project resolution and issue writing."""

from abc import ABC, abstractmethod

from yousync.synchronize.models import DestinationIssueFields, DestinationIssueRef, DestinationProject


class ProjectResolverBase(ABC):
    """Base ABC for destination project resolvers."""

    @abstractmethod
    async def resolve_project(self, query: str) -> DestinationProject:
        """Return the best matching project for a search query.

        Raises ProjectResolutionError when nothing matches. On multiple matches the
        first result of the underlying search ranking is returned.
        """
        pass


class DestinationWriterBase(ABC):
    """Base ABC for destination issue writers."""

    @abstractmethod
    async def create_issue(self, project: DestinationProject, fields: DestinationIssueFields) -> DestinationIssueRef:
        """Create an issue in a project from a field set."""
        pass

    @abstractmethod
    async def update_issue(self, issue_id: str, fields: DestinationIssueFields) -> None:
        """Update only the set fields of an existing issue."""
        pass
