"""Sets up the authenticated httpx client for the YouTrack REST API."""

import httpx

YOUTRACK_TIMEOUT = httpx.Timeout(timeout=30.0, connect=10.0)


async def get_youtrack_client(youtrack_url: str, youtrack_token: str, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Returns an httpx client authenticated against a YouTrack instance with a permanent token."""
    if not youtrack_token:
        raise RuntimeError("YouTrack authentication requires a YouTrack token.")
    base_url = youtrack_url if youtrack_url.endswith("/") else f"{youtrack_url}/"
    return httpx.AsyncClient(
        base_url=base_url,
        headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {youtrack_token}",
        },
        timeout=YOUTRACK_TIMEOUT,
        transport=transport,
    )
