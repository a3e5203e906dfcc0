"""Jira REST API client."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from alignzo.config import get_settings
from alignzo.exceptions import UpstreamError

logger = structlog.get_logger()

SERVICE_NAME = "jira"

SEARCH_FIELDS = [
    "summary",
    "description",
    "status",
    "assignee",
    "reporter",
    "project",
    "priority",
    "issuetype",
    "created",
    "updated",
]

# Page size used when fetching every result of a query
SEARCH_ALL_PAGE_SIZE = 500


@dataclass
class JiraIssue:
    """Flattened view of a Jira issue."""

    key: str
    summary: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assignee: str | None = None
    reporter: str | None = None
    project: str | None = None
    issue_type: str | None = None
    created: str | None = None
    updated: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "JiraIssue":
        fields = data.get("fields") or {}

        def name_of(key: str, attr: str = "name") -> str | None:
            value = fields.get(key)
            return value.get(attr) if isinstance(value, dict) else None

        description = fields.get("description")
        if description is not None and not isinstance(description, str):
            # Cloud v3 responses carry rich-text documents
            description = None

        return cls(
            key=data.get("key", ""),
            summary=fields.get("summary"),
            description=description,
            status=name_of("status"),
            priority=name_of("priority"),
            assignee=name_of("assignee", "displayName"),
            reporter=name_of("reporter", "displayName"),
            project=name_of("project", "key"),
            issue_type=name_of("issuetype"),
            created=fields.get("created"),
            updated=fields.get("updated"),
        )


class JiraClient:
    """Async client for one user's Jira site, authenticated with an API token.

    ``transport`` is handed to ``httpx.AsyncClient`` so callers can swap the
    network layer.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.strip().rstrip("/")
        self.auth = httpx.BasicAuth(email, api_token)
        self.timeout = timeout if timeout is not None else get_settings().jira_timeout_seconds
        self.transport = transport
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}/rest/api/2/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=self.auth,
                headers=self.headers,
                transport=self.transport,
            ) as client:
                response = await client.request(method, url, json=json, params=params)
        except httpx.HTTPError as e:
            logger.warning("jira_request_failed", method=method, path=path, error=str(e))
            raise UpstreamError(SERVICE_NAME, f"Request failed: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "jira_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise UpstreamError(SERVICE_NAME, message, upstream_status=response.status_code)

        if not response.content:
            return None
        return response.json()

    async def verify(self) -> dict[str, Any]:
        """Return the authenticated account, raising UpstreamError on bad credentials."""
        return await self._request("GET", "myself")

    async def search(
        self,
        jql: str,
        max_results: int = 50,
        start_at: int = 0,
    ) -> tuple[list[JiraIssue], int]:
        """Run one page of a JQL search; returns the issues and the total count."""
        data = await self._request(
            "POST",
            "search",
            json={
                "jql": jql,
                "maxResults": max_results,
                "startAt": start_at,
                "fields": SEARCH_FIELDS,
            },
        ) or {}
        issues = [JiraIssue.from_api(issue) for issue in data.get("issues", [])]
        return issues, int(data.get("total", len(issues)))

    async def search_all(self, jql: str) -> list[JiraIssue]:
        """Follow ``startAt`` paging until every matching issue is fetched."""
        issues: list[JiraIssue] = []
        start_at = 0
        while True:
            page, total = await self.search(jql, SEARCH_ALL_PAGE_SIZE, start_at)
            issues.extend(page)
            start_at += SEARCH_ALL_PAGE_SIZE
            if not page or start_at >= total:
                break
        logger.info("jira_search_all_completed", count=len(issues))
        return issues

    async def get_issue(self, key: str) -> JiraIssue:
        data = await self._request(
            "GET", f"issue/{key}", params={"fields": ",".join(SEARCH_FIELDS)}
        )
        return JiraIssue.from_api(data or {})

    async def create_issue(
        self,
        project_key: str,
        summary: str,
        description: str | None = None,
        issue_type: str = "Task",
        priority: str | None = None,
    ) -> str:
        """Create an issue and return its key."""
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            fields["description"] = description
        if priority:
            fields["priority"] = {"name": priority}

        data = await self._request("POST", "issue", json={"fields": fields}) or {}
        logger.info("jira_issue_created", project_key=project_key, key=data.get("key"))
        return data.get("key", "")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        messages = list(body.get("errorMessages") or [])
        messages.extend(f"{k}: {v}" for k, v in (body.get("errors") or {}).items())
        if messages:
            return "; ".join(messages)
    return f"HTTP {response.status_code}"
