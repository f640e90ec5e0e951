"""Base ABC for source issue readers."""

from abc import ABC, abstractmethod

from yousync.synchronize.models import SourceIssue


class SourceReaderBase(ABC):
    """Base ABC for source issue readers."""

    @abstractmethod
    async def list_issues(self) -> list[SourceIssue]:
        """List every issue of the source repository, fully materialized across pages."""
        pass
