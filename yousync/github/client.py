"""Sets up the authenticated githubkit client."""

from githubkit import GitHub
from githubkit.auth import TokenAuthStrategy

from yousync.utils.constants import DEFAULT_GITHUB_API_URL


async def get_github_client(github_token: str, github_api_url: str = DEFAULT_GITHUB_API_URL) -> GitHub[TokenAuthStrategy]:
    """Returns an authenticated GitHub client using a token.

    Supports custom base URL for GitHub Enterprise Server (GHES).
    Raises RuntimeError if no token is provided.
    """
    if not github_token:
        raise RuntimeError("GitHub authentication requires a GitHub token.")
    # Disable HTTP caching to always get fresh data
    return GitHub(auth=TokenAuthStrategy(github_token), base_url=github_api_url, http_cache=False)
