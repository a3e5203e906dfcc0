"""Jira ticket lookup by free-text term, narrowest query first.

The strategies, in order:

1. ``exact_key``: the term is an issue key, searched across all projects.
2. ``project_key_pattern``: a bare issue number, or ``<PROJECT>-<n>`` for the
   scoped project.
3. ``project_text``: summary/description match inside the project.
4. ``global_text``: summary/description/text match across all projects.

A strategy that does not apply to the term raises StrategySkipped without
querying.
"""

import re
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from alignzo.config import get_settings
from alignzo.exceptions import ValidationError
from alignzo.services.jira_client import JiraClient, JiraIssue
from alignzo.services.waterfall import StrategySkipped, run_waterfall

logger = structlog.get_logger()

ISSUE_KEY_PATTERN = re.compile(r"^([A-Z][A-Z0-9_]*)-(\d+)$")
ISSUE_NUMBER_PATTERN = re.compile(r"^\d+$")
PROJECT_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def escape_jql(value: str) -> str:
    """Escape a value for use inside a double-quoted JQL string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


@dataclass
class TicketSearchResult:
    strategy: str | None
    tickets: list[JiraIssue]

    @property
    def total(self) -> int:
        return len(self.tickets)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "tickets": [asdict(t) for t in self.tickets],
            "total": self.total,
        }


class TicketSearch:
    """The four search strategies bound to one client and result limit."""

    def __init__(self, client: JiraClient, max_results: int | None = None):
        self.client = client
        self.max_results = max_results or get_settings().jira_search_max_results

    @property
    def strategies(self):
        return [
            ("exact_key", self.exact_key),
            ("project_key_pattern", self.project_key_pattern),
            ("project_text", self.project_text),
            ("global_text", self.global_text),
        ]

    async def _run(self, jql: str) -> list[JiraIssue]:
        logger.debug("jira_search_query", jql=jql)
        issues, _ = await self.client.search(jql, max_results=self.max_results)
        return issues

    async def exact_key(self, project_key: str, term: str) -> list[JiraIssue]:
        key = term.upper()
        if not ISSUE_KEY_PATTERN.match(key):
            raise StrategySkipped(key)
        return await self._run(f'key = "{escape_jql(key)}"')

    async def project_key_pattern(self, project_key: str, term: str) -> list[JiraIssue]:
        if ISSUE_NUMBER_PATTERN.match(term):
            key = f"{project_key}-{int(term)}"
        else:
            match = ISSUE_KEY_PATTERN.match(term.upper())
            if not match or match.group(1) != project_key:
                raise StrategySkipped(term)
            key = f"{project_key}-{int(match.group(2))}"
        return await self._run(
            f'project = "{escape_jql(project_key)}" AND key = "{escape_jql(key)}"'
        )

    async def project_text(self, project_key: str, term: str) -> list[JiraIssue]:
        text = escape_jql(term)
        return await self._run(
            f'project = "{escape_jql(project_key)}" AND '
            f'(summary ~ "{text}" OR description ~ "{text}") ORDER BY updated DESC'
        )

    async def global_text(self, project_key: str, term: str) -> list[JiraIssue]:
        text = escape_jql(term)
        return await self._run(
            f'summary ~ "{text}" OR description ~ "{text}" OR text ~ "{text}" '
            "ORDER BY updated DESC"
        )

    async def search(self, project_key: str | None, term: str | None) -> TicketSearchResult:
        """Run the strategies in order and return the first non-empty result.

        Raises ValidationError for a missing project key or term, and
        UpstreamError when every strategy failed.
        """
        project_key = (project_key or "").strip().upper()
        term = (term or "").strip()
        if not project_key:
            raise ValidationError("Project key is required", field="project_key")
        if not PROJECT_KEY_PATTERN.match(project_key):
            raise ValidationError(f"Invalid project key: {project_key}", field="project_key")
        if not term:
            raise ValidationError("Search term is required", field="search_term")

        result = await run_waterfall(self.strategies, project_key, term, service="jira")
        logger.info(
            "jira_ticket_search",
            project_key=project_key,
            strategy=result.strategy,
            count=len(result.items),
            failed=list(result.failed),
        )
        return TicketSearchResult(strategy=result.strategy, tickets=result.items)
