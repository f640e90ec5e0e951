"""GitHub source reader adapter for the githubkit library."""

from functools import wraps
from typing import Any, Awaitable, Callable, Self, TypeVar

import structlog
from githubkit import GitHub, Response
from githubkit.exception import RequestFailed
from githubkit.utils import UNSET
from githubkit.versions.latest.models import Issue

from yousync.github.exceptions import GitHubAuthenticationError
from yousync.synchronize.models import IssueState, SourceIssue
from yousync.synchronize.utils import extract_label_names
from yousync.utils.constants import DEFAULT_GITHUB_API_URL, GITHUB_ISSUES_PER_PAGE
from yousync.utils.github import split_repository_in_configuration
from yousync.utils.retry import retry_on_transient_failure

from .abc import SourceReaderBase
from .client import get_github_client

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def handle_github_401(func: F) -> F:
    """Decorator to translate GitHub 401 Unauthorized errors into GitHubAuthenticationError."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except RequestFailed as exc:
            if exc.response.status_code == 401:
                logger.error(
                    "GitHub 401 Unauthorized",
                    function=func.__name__,
                    url=getattr(exc.response, "url", None),
                    status_code=401,
                )
                raise GitHubAuthenticationError(f"GitHub rejected the supplied token in {func.__name__}") from exc
            raise

    return wrapper  # type: ignore


def _unset_to_none(value: Any) -> Any:
    """githubkit marks fields absent from a payload as UNSET."""
    return None if value is UNSET else value


def is_pull_request(issue: Issue) -> bool:
    """Return whether an entry of the issues listing is a pull request."""
    return _unset_to_none(getattr(issue, "pull_request", None)) is not None


def to_source_issue(issue: Issue) -> SourceIssue:
    """Convert a githubkit issue into a source issue."""
    return SourceIssue(
        id=issue.id,
        number=issue.number,
        title=issue.title,
        body=_unset_to_none(issue.body),
        state=IssueState(issue.state),
        state_reason=_unset_to_none(getattr(issue, "state_reason", None)),
        labels=extract_label_names(issue.labels or []),
        updated_at=_unset_to_none(issue.updated_at),
    )


class GitHubKitAdapter(SourceReaderBase):
    """GitHub source reader adapter for the githubkit library."""

    def __init__(self, client: GitHub[Any], owner: str, repo_name: str) -> None:
        """Initialize the GitHub client adapter with an already-initialized client."""
        self.client = client
        self.owner = owner
        self.repo_name = repo_name

    @classmethod
    async def create(cls, repo: str, github_token: str, github_api_url: str = DEFAULT_GITHUB_API_URL) -> Self:
        """Create a new GitHub client adapter.

        Args:
            repo: Repository in 'owner/repo' format
            github_token: Personal access token
            github_api_url: GitHub API URL (defaults to https://api.github.com)

        Returns:
            Configured GitHubKitAdapter instance

        Raises:
            ValueError: If the repository is malformed
        """
        owner, repo_name = await split_repository_in_configuration(repo=repo)
        logger.info(
            "Creating client for GitHub instance and repository",
            github_api_url=github_api_url,
            owner=owner,
            repo_name=repo_name,
        )
        client = await get_github_client(github_token=github_token, github_api_url=github_api_url)
        return cls(client, owner, repo_name)

    @retry_on_transient_failure()
    async def _list_issues_page(self, page: int, per_page: int) -> list[Issue]:
        """Fetch a single page of the issues listing, pull requests included."""
        response: Response[list[Issue]] = await self.client.rest.issues.async_list_for_repo(
            owner=self.owner,
            repo=self.repo_name,
            state="all",
            per_page=per_page,
            page=page,
        )
        return response.parsed_data

    @handle_github_401
    async def list_issues(self, per_page: int = GITHUB_ISSUES_PER_PAGE) -> list[SourceIssue]:
        """List all issues for the repository, handling pagination and excluding pull requests.

        Each page is retried independently; a page that still fails aborts the
        listing so that a partial issue set is never returned.
        """
        all_issues: list[SourceIssue] = []
        pull_request_count = 0
        page: int = 1
        while True:
            issues = await self._list_issues_page(page, per_page)
            if not issues:
                break
            for issue in issues:
                if is_pull_request(issue):
                    pull_request_count += 1
                    continue
                all_issues.append(to_source_issue(issue))
            if len(issues) < per_page:
                break
            page += 1
        logger.debug(
            "Listed GitHub issues",
            owner=self.owner,
            repo_name=self.repo_name,
            issue_count=len(all_issues),
            skipped_pull_requests=pull_request_count,
            pages=page,
        )
        return all_issues
