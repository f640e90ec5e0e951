"""Contains exceptions raised while synchronizing issues."""


class SynchronizationError(Exception):
    """Base class for errors raised by the synchronization engine and its collaborators."""

    pass


class AuthenticationError(SynchronizationError):
    """Raised when a tracker rejects the supplied credentials.

    Authentication failures are fatal for a run.
    """

    pass


class ProjectResolutionError(SynchronizationError):
    """Raised when the destination project cannot be resolved."""

    pass


class StoreWriteError(SynchronizationError):
    """Raised when the correspondence store cannot durably record a write."""

    pass


class CorrespondenceConflictError(StoreWriteError):
    """Raised when a destination issue is already mapped to a different source issue."""

    def __init__(self, destination_issue_id: str, existing_source_issue_id: int, source_issue_id: int) -> None:
        """Initializes the exception with both conflicting source issue identifiers."""
        super().__init__(
            f"Destination issue {destination_issue_id} is already mapped to source issue "
            f"{existing_source_issue_id}; refusing to map it to source issue {source_issue_id}"
        )
        self.destination_issue_id = destination_issue_id
        self.existing_source_issue_id = existing_source_issue_id
        self.source_issue_id = source_issue_id


class PartialCreationError(SynchronizationError):
    """Raised when a destination issue was created but not every field could be applied to it.

    Carries the created issue so the correspondence can still be recorded and the
    missing fields retried on a later run instead of creating a second issue.
    """

    def __init__(self, destination_issue_id: str, applied_labels: list[str], cause: Exception) -> None:
        """Initializes the exception with the created issue and the labels that were applied."""
        super().__init__(f"Destination issue {destination_issue_id} was created, but applying its tags failed: {cause}")
        self.destination_issue_id = destination_issue_id
        self.applied_labels = applied_labels
        self.cause = cause


class SourceReadError(SynchronizationError):
    """Raised when the source issue set cannot be read for a run."""

    pass


class StoreOpenError(SynchronizationError):
    """Raised when the correspondence store cannot be opened or holds corrupt records."""

    pass
