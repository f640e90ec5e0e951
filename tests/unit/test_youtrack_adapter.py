"""Unit tests for the YouTrackAdapter class and related YouTrack operations."""

import asyncio
import json
from typing import Any, Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from yousync.synchronize.exceptions import PartialCreationError
from yousync.synchronize.models import DestinationIssueFields, DestinationProject
from yousync.youtrack.adapter import YouTrackAdapter
from yousync.youtrack.client import get_youtrack_client
from yousync.youtrack.exceptions import ProjectNotFoundError, YouTrackAuthenticationError, YouTrackRequestFailed

PROJECT = DestinationProject(id="0-1", name="Demo", short_name="DEMO")

Route = Callable[[httpx.Request], httpx.Response]


class FakeYouTrack:
    """Routes requests to canned handlers and records every request it receives."""

    def __init__(self, routes: dict[tuple[str, str], Route | list[Route]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not Found", "error_description": f"No route for {request.url.path}"})
        if isinstance(route, list):
            return route.pop(0)(request)
        return route(request)

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == method and request.url.path == path]


def respond(status_code: int = 200, body: Any = None) -> Route:
    """Build a route answering with a fixed status and JSON body."""

    def route(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    return route


def body_of(request: httpx.Request) -> Any:
    """Decode the JSON body of a recorded request."""
    return json.loads(request.content)


async def make_adapter(youtrack: FakeYouTrack) -> YouTrackAdapter:
    """Create an adapter whose client talks to the fake YouTrack."""
    client = await get_youtrack_client("https://youtrack.example.com", "perm:token", transport=httpx.MockTransport(youtrack))
    return YouTrackAdapter(client)


@pytest.mark.asyncio
async def test_client_sends_bearer_token() -> None:
    """Test that every request carries the permanent token."""
    youtrack = FakeYouTrack({("GET", "/api/admin/projects"): respond(body=[{"id": "0-1", "name": "Demo", "shortName": "DEMO"}])})
    adapter = await make_adapter(youtrack)

    await adapter.find_projects("Demo")

    request = youtrack.requests[0]
    assert request.headers["Authorization"] == "Bearer perm:token"
    assert request.url.host == "youtrack.example.com"


@pytest.mark.asyncio
async def test_get_youtrack_client_requires_token() -> None:
    """Test that a client cannot be created without a token."""
    with pytest.raises(RuntimeError):
        await get_youtrack_client("https://youtrack.example.com", "")


@pytest.mark.asyncio
async def test_resolve_project_returns_first_match() -> None:
    """Test that the first project of YouTrack's ranking is used."""
    projects = [{"id": "0-1", "name": "Demo", "shortName": "DEMO"}, {"id": "0-2", "name": "Demo Archive", "shortName": "DA"}]
    youtrack = FakeYouTrack({("GET", "/api/admin/projects"): respond(body=projects)})
    adapter = await make_adapter(youtrack)

    project = await adapter.resolve_project("Demo")

    assert project == PROJECT
    params = youtrack.requests[0].url.params
    assert params["query"] == "Demo"
    assert params["fields"] == "id,name,shortName"


@pytest.mark.asyncio
async def test_resolve_project_without_match() -> None:
    """Test that a query matching nothing raises ProjectNotFoundError."""
    youtrack = FakeYouTrack({("GET", "/api/admin/projects"): respond(body=[])})
    adapter = await make_adapter(youtrack)

    with pytest.raises(ProjectNotFoundError, match="Nope"):
        await adapter.resolve_project("Nope")


@pytest.mark.asyncio
async def test_unauthorized_is_not_retried() -> None:
    """Test that a rejected token raises YouTrackAuthenticationError after a single request."""
    youtrack = FakeYouTrack({("GET", "/api/admin/projects"): respond(401, {"error": "Unauthorized", "error_description": "Invalid token"})})
    adapter = await make_adapter(youtrack)

    with pytest.raises(YouTrackAuthenticationError, match="Invalid token"):
        await adapter.resolve_project("Demo")

    assert len(youtrack.requests) == 1


@pytest.mark.asyncio
async def test_server_error_is_retried() -> None:
    """Test that a 5xx response is retried with backoff."""
    projects = [{"id": "0-1", "name": "Demo", "shortName": "DEMO"}]
    youtrack = FakeYouTrack({("GET", "/api/admin/projects"): [respond(503), respond(body=projects)]})
    adapter = await make_adapter(youtrack)

    with patch("yousync.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        project = await adapter.resolve_project("Demo")

    assert project.id == "0-1"
    assert len(youtrack.requests) == 2
    mock_sleep.assert_awaited_once_with(1.0)


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    """Test that a 4xx response other than a rate limit propagates immediately."""
    youtrack = FakeYouTrack({("POST", "/api/issues/2-1"): respond(400, {"error": "bad_request", "error_description": "Unknown field"})})
    adapter = await make_adapter(youtrack)

    with pytest.raises(YouTrackRequestFailed, match="Unknown field") as exc_info:
        await adapter.update_issue("2-1", DestinationIssueFields(summary="New"))

    assert exc_info.value.status_code == 400
    assert len(youtrack.requests) == 1


@pytest.mark.asyncio
async def test_create_issue_sends_all_fields_and_tags() -> None:
    """Test that creation posts summary, description and state, then attaches every tag."""
    youtrack = FakeYouTrack(
        {
            ("POST", "/api/issues"): respond(body={"id": "2-17", "idReadable": "DEMO-17", "$type": "Issue"}),
            ("GET", "/api/issues/2-17/tags"): respond(body=[]),
            ("GET", "/api/tags"): [respond(body=[{"id": "6-1", "name": "bug"}]), respond(body=[{"id": "6-3", "name": "ui-kit"}])],
            ("POST", "/api/tags"): respond(body={"id": "6-4", "name": "ui"}),
            ("POST", "/api/issues/2-17/tags"): respond(body={"id": "6-1", "name": "bug"}),
        }
    )
    adapter = await make_adapter(youtrack)
    fields = DestinationIssueFields(
        summary="Crash on startup",
        description=None,
        include_description=True,
        resolved=False,
        state_name="Open",
        tags_to_add=["bug", "ui"],
    )

    issue = await adapter.create_issue(PROJECT, fields)

    assert issue.id == "2-17"
    assert issue.id_readable == "DEMO-17"
    assert body_of(youtrack.sent("POST", "/api/issues")[0]) == {
        "project": {"id": "0-1"},
        "summary": "Crash on startup",
        "description": None,
        "customFields": [{"name": "State", "$type": "StateIssueCustomField", "value": {"name": "Open"}}],
    }
    assert body_of(youtrack.sent("POST", "/api/tags")[0]) == {"name": "ui"}
    assert [body_of(request) for request in youtrack.sent("POST", "/api/issues/2-17/tags")] == [{"id": "6-1"}, {"id": "6-4"}]


@pytest.mark.asyncio
async def test_create_issue_tag_failure_reports_partial_creation() -> None:
    """Test that a tag failure after creation carries the created issue and the applied labels."""
    youtrack = FakeYouTrack(
        {
            ("POST", "/api/issues"): respond(body={"id": "2-17", "idReadable": "DEMO-17"}),
            ("GET", "/api/issues/2-17/tags"): respond(body=[]),
            ("GET", "/api/tags"): [respond(body=[{"id": "6-1", "name": "bug"}]), respond(body=[])],
            ("POST", "/api/tags"): respond(403, {"error": "forbidden", "error_description": "Cannot create tags"}),
            ("POST", "/api/issues/2-17/tags"): respond(body={"id": "6-1", "name": "bug"}),
        }
    )
    adapter = await make_adapter(youtrack)
    fields = DestinationIssueFields(summary="Crash", include_description=True, state_name="Open", tags_to_add=["bug", "ui"])

    with pytest.raises(PartialCreationError) as exc_info:
        await adapter.create_issue(PROJECT, fields)

    assert exc_info.value.destination_issue_id == "2-17"
    assert exc_info.value.applied_labels == ["bug"]
    assert isinstance(exc_info.value.cause, YouTrackRequestFailed)
    assert len(youtrack.sent("POST", "/api/issues")) == 1


@pytest.mark.asyncio
async def test_update_issue_sends_only_set_fields() -> None:
    """Test that an update payload omits every field that did not change."""
    youtrack = FakeYouTrack({("POST", "/api/issues/2-1"): respond(body={"id": "2-1"})})
    adapter = await make_adapter(youtrack)

    await adapter.update_issue("2-1", DestinationIssueFields(summary="Crash on startup"))

    assert body_of(youtrack.requests[0]) == {"summary": "Crash on startup"}
    assert len(youtrack.requests) == 1


@pytest.mark.asyncio
async def test_update_issue_resolution_uses_state_field() -> None:
    """Test that resolving an issue sets the configured state."""
    youtrack = FakeYouTrack({("POST", "/api/issues/2-1"): respond(body={"id": "2-1"})})
    adapter = await make_adapter(youtrack)

    await adapter.update_issue("2-1", DestinationIssueFields(resolved=True, state_name="Fixed"))

    assert body_of(youtrack.requests[0]) == {"customFields": [{"name": "State", "$type": "StateIssueCustomField", "value": {"name": "Fixed"}}]}


@pytest.mark.asyncio
async def test_update_issue_with_only_tag_changes() -> None:
    """Test that tag-only updates never rewrite the issue and skip tags already in place."""
    youtrack = FakeYouTrack(
        {
            ("GET", "/api/issues/2-1/tags"): respond(body=[{"id": "6-1", "name": "bug"}, {"id": "6-9", "name": "triaged"}]),
            ("GET", "/api/tags"): respond(body=[{"id": "6-2", "name": "ui"}]),
            ("POST", "/api/issues/2-1/tags"): respond(body={"id": "6-2", "name": "ui"}),
            ("DELETE", "/api/issues/2-1/tags/6-1"): respond(200),
        }
    )
    adapter = await make_adapter(youtrack)

    await adapter.update_issue("2-1", DestinationIssueFields(tags_to_add=["ui"], tags_to_remove=["bug", "docs"]))

    assert youtrack.sent("POST", "/api/issues/2-1") == []
    assert [body_of(request) for request in youtrack.sent("POST", "/api/issues/2-1/tags")] == [{"id": "6-2"}]
    assert len(youtrack.sent("DELETE", "/api/issues/2-1/tags/6-1")) == 1
    assert len([request for request in youtrack.requests if request.method == "DELETE"]) == 1


@pytest.mark.asyncio
async def test_resolve_tag_id_is_cached() -> None:
    """Test that a tag name is only looked up once per adapter."""
    youtrack = FakeYouTrack({("GET", "/api/tags"): respond(body=[{"id": "6-1", "name": "bug"}])})
    adapter = await make_adapter(youtrack)

    assert await adapter.resolve_tag_id("bug") == "6-1"
    assert await adapter.resolve_tag_id("bug") == "6-1"

    assert len(youtrack.requests) == 1


@pytest.mark.asyncio
async def test_resolve_tag_id_searches_every_page() -> None:
    """Test that an exact match past the first page of similar tags is found instead of duplicated."""
    first_page = [{"id": f"6-{index}", "name": f"bug-{index}"} for index in range(100)]
    youtrack = FakeYouTrack({("GET", "/api/tags"): [respond(body=first_page), respond(body=[{"id": "6-500", "name": "bug"}])]})
    adapter = await make_adapter(youtrack)

    assert await adapter.resolve_tag_id("bug") == "6-500"

    assert [request.url.params["$skip"] for request in youtrack.requests] == ["0", "100"]
    assert youtrack.requests[0].url.params["$top"] == "100"
    assert youtrack.sent("POST", "/api/tags") == []


@pytest.mark.asyncio
async def test_resolve_tag_id_does_not_block_other_tags() -> None:
    """Test that a slow lookup of one tag does not hold up a different tag."""
    adapter = await make_adapter(FakeYouTrack({}))
    release = asyncio.Event()

    async def find_tag_id(name: str) -> str:
        if name == "slow":
            await release.wait()
        return f"id-{name}"

    with patch.object(adapter, "find_tag_id", new=find_tag_id):
        slow = asyncio.create_task(adapter.resolve_tag_id("slow"))
        await asyncio.sleep(0)

        assert await asyncio.wait_for(adapter.resolve_tag_id("fast"), timeout=1) == "id-fast"
        assert not slow.done()

        release.set()
        assert await slow == "id-slow"


@pytest.mark.asyncio
async def test_resolve_tag_id_concurrent_same_name_creates_once() -> None:
    """Test that concurrent lookups of one missing tag create it only once."""
    youtrack = FakeYouTrack(
        {
            ("GET", "/api/tags"): respond(body=[]),
            ("POST", "/api/tags"): respond(body={"id": "6-7", "name": "ui"}),
        }
    )
    adapter = await make_adapter(youtrack)

    assert await asyncio.gather(adapter.resolve_tag_id("ui"), adapter.resolve_tag_id("ui")) == ["6-7", "6-7"]

    assert len(youtrack.sent("POST", "/api/tags")) == 1


@pytest.mark.asyncio
async def test_adapter_context_manager_closes_client() -> None:
    """Test that leaving the context closes the HTTP client."""
    adapter = await make_adapter(FakeYouTrack({}))

    async with adapter:
        pass

    assert adapter.client.is_closed
