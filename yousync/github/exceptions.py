"""Contains exceptions raised by the GitHub adapter."""

from yousync.synchronize.exceptions import AuthenticationError


class GitHubAuthenticationError(AuthenticationError):
    """Raised when GitHub rejects the supplied token."""

    pass
