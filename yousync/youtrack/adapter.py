"""YouTrack destination adapter for the YouTrack REST API."""

import asyncio
from typing import Any, Self

import httpx
import structlog

from yousync.synchronize.exceptions import PartialCreationError
from yousync.synchronize.mapping import FieldMappingPolicy
from yousync.synchronize.models import DestinationIssueFields, DestinationIssueRef, DestinationProject
from yousync.utils.constants import (
    YOUTRACK_ISSUE_FIELDS,
    YOUTRACK_PROJECT_FIELDS,
    YOUTRACK_STATE_FIELD_TYPE,
    YOUTRACK_TAG_FIELDS,
    YOUTRACK_TAGS_PER_PAGE,
)
from yousync.utils.retry import retry_on_transient_failure

from .abc import DestinationWriterBase, ProjectResolverBase
from .client import get_youtrack_client
from .exceptions import ProjectNotFoundError, YouTrackAuthenticationError, YouTrackRequestFailed

logger = structlog.get_logger(__name__)


class YouTrackAdapter(ProjectResolverBase, DestinationWriterBase):
    """Resolves YouTrack projects and writes YouTrack issues and tags."""

    def __init__(self, client: httpx.AsyncClient, policy: FieldMappingPolicy | None = None) -> None:
        """Initialize the YouTrack adapter with an already-initialized client."""
        self.client = client
        self.policy = policy or FieldMappingPolicy()
        self._tag_ids: dict[str, str] = {}
        self._tag_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def create(cls, youtrack_url: str, youtrack_token: str, policy: FieldMappingPolicy | None = None) -> Self:
        """Create a new YouTrack adapter for a YouTrack instance."""
        logger.info("Creating client for YouTrack instance", youtrack_url=youtrack_url)
        client = await get_youtrack_client(youtrack_url=youtrack_url, youtrack_token=youtrack_token)
        return cls(client, policy)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @retry_on_transient_failure()
    async def _request(self, method: str, path: str, params: dict[str, Any] | None = None, json: Any = None) -> Any:
        """Send a request and return its decoded JSON body, or None for an empty body."""
        response = await self.client.request(method, path, params=params, json=json)
        if response.status_code == 401:
            raise YouTrackAuthenticationError(response)
        if response.is_error:
            raise YouTrackRequestFailed(response)
        if not response.content:
            return None
        return response.json()

    # Project resolution
    async def find_projects(self, query: str) -> list[DestinationProject]:
        """Return the first page of candidate projects for a query, in YouTrack's ranking order."""
        params: dict[str, Any] = {"fields": YOUTRACK_PROJECT_FIELDS}
        if query:
            params["query"] = query
        data = await self._request("GET", "api/admin/projects", params=params)
        return [DestinationProject(id=item["id"], name=item["name"], short_name=item.get("shortName")) for item in data or []]

    async def resolve_project(self, query: str) -> DestinationProject:
        """Return the first project matching a query."""
        projects = await self.find_projects(query)
        if not projects:
            raise ProjectNotFoundError(query)
        if len(projects) > 1:
            logger.info(
                "Multiple YouTrack projects match the query, using the first",
                project_query=query,
                candidates=[project.name for project in projects],
            )
        return projects[0]

    # Issue CRUD
    def _issue_payload(self, fields: DestinationIssueFields) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if fields.summary is not None:
            payload["summary"] = fields.summary
        if fields.include_description:
            payload["description"] = fields.description
        if fields.state_name is not None:
            payload["customFields"] = [
                {
                    "name": self.policy.state_field_name,
                    "$type": YOUTRACK_STATE_FIELD_TYPE,
                    "value": {"name": fields.state_name},
                }
            ]
        return payload

    async def create_issue(self, project: DestinationProject, fields: DestinationIssueFields) -> DestinationIssueRef:
        """Create an issue in a project, then attach its tags."""
        payload = {"project": {"id": project.id}, **self._issue_payload(fields)}
        data = await self._request("POST", "api/issues", params={"fields": YOUTRACK_ISSUE_FIELDS}, json=payload)
        issue = DestinationIssueRef(id=data["id"], id_readable=data.get("idReadable"))

        applied: list[str] = []
        try:
            await self._apply_tags(issue.id, fields.tags_to_add, [], applied)
        except Exception as exc:
            raise PartialCreationError(issue.id, applied, exc) from exc
        return issue

    async def update_issue(self, issue_id: str, fields: DestinationIssueFields) -> None:
        """Update only the set fields of an issue, then reconcile its tags."""
        if fields.has_issue_fields():
            await self._request("POST", f"api/issues/{issue_id}", params={"fields": "id"}, json=self._issue_payload(fields))
        if fields.has_tag_changes():
            await self._apply_tags(issue_id, fields.tags_to_add, fields.tags_to_remove, [])

    # Tag CRUD
    async def list_issue_tags(self, issue_id: str) -> dict[str, str]:
        """Return the tags attached to an issue as a name to id mapping."""
        data = await self._request("GET", f"api/issues/{issue_id}/tags", params={"fields": YOUTRACK_TAG_FIELDS})
        return {tag["name"]: tag["id"] for tag in data or []}

    async def find_tag_id(self, name: str) -> str | None:
        """Return the id of the tag with exactly this name, searching every page of matches."""
        skip = 0
        while True:
            params: dict[str, Any] = {"fields": YOUTRACK_TAG_FIELDS, "query": name, "$top": YOUTRACK_TAGS_PER_PAGE, "$skip": skip}
            page = await self._request("GET", "api/tags", params=params) or []
            tag_id = next((tag["id"] for tag in page if tag["name"] == name), None)
            if tag_id is not None or len(page) < YOUTRACK_TAGS_PER_PAGE:
                return tag_id
            skip += len(page)

    async def resolve_tag_id(self, name: str) -> str:
        """Return the id of the tag with exactly this name, creating the tag if needed.

        Lookups of the same name are serialized so a tag is created at most once;
        lookups of different names run concurrently.
        """
        lock = self._tag_locks.setdefault(name, asyncio.Lock())
        async with lock:
            if name in self._tag_ids:
                return self._tag_ids[name]
            tag_id = await self.find_tag_id(name)
            if tag_id is None:
                logger.info("Creating YouTrack tag", tag_name=name)
                created = await self._request("POST", "api/tags", params={"fields": YOUTRACK_TAG_FIELDS}, json={"name": name})
                tag_id = created["id"]
            self._tag_ids[name] = tag_id
            return tag_id

    async def _apply_tags(self, issue_id: str, tags_to_add: list[str], tags_to_remove: list[str], applied: list[str]) -> None:
        """Attach and detach tags by name; tags already in the desired state are skipped."""
        if not tags_to_add and not tags_to_remove:
            return
        attached = await self.list_issue_tags(issue_id)
        for name in tags_to_add:
            if name not in attached:
                tag_id = await self.resolve_tag_id(name)
                await self._request("POST", f"api/issues/{issue_id}/tags", params={"fields": YOUTRACK_TAG_FIELDS}, json={"id": tag_id})
            applied.append(name)
        for name in tags_to_remove:
            if name not in attached:
                logger.debug("Tag already detached from issue", issue_id=issue_id, tag_name=name)
                continue
            await self._request("DELETE", f"api/issues/{issue_id}/tags/{attached[name]}")
