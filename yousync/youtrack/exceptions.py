"""Contains exceptions raised by the YouTrack adapter."""

import httpx

from yousync.synchronize.exceptions import AuthenticationError, ProjectResolutionError


class YouTrackRequestFailed(Exception):
    """Raised when YouTrack answers a request with a non-success status code."""

    def __init__(self, response: httpx.Response) -> None:
        """Initializes the exception from the failed response."""
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}
        description = error_data.get("error_description") or error_data.get("error") or response.reason_phrase
        try:
            target = f"{response.request.method} {response.request.url}"
        except RuntimeError:
            target = "request"
        super().__init__(f"YouTrack {target} failed with status {response.status_code}: {description}")
        self.response = response
        self.status_code = response.status_code


class YouTrackAuthenticationError(YouTrackRequestFailed, AuthenticationError):
    """Raised when YouTrack rejects the supplied token."""

    pass


class ProjectNotFoundError(ProjectResolutionError):
    """Raised when no YouTrack project matches the search query."""

    def __init__(self, query: str) -> None:
        """Initializes the exception with the query that matched nothing."""
        super().__init__(f"No YouTrack project matches the query '{query}'")
        self.query = query
