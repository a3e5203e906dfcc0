"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, created fresh for each test
- Seeded project with categories, options, columns and a task
- JWT token minting for authenticated requests
- HTTPX AsyncClient over the ASGI app, with a fake Jira behind MockTransport
"""
import json
import os
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Callable

# Settings are read once; point them at test values before the app is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["TICKET_TIMEZONE"] = "UTC"

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from alignzo.api.deps import get_jira_transport
from alignzo.cache import TTLCache
from alignzo.db.base import Base
from alignzo.db.session import get_db_session
from alignzo.main import create_app
from alignzo.models import (
    CategoryOption,
    KanbanColumn,
    KanbanTask,
    Project,
    ProjectCategory,
    TicketSource,
)

USER_EMAIL = "agent@example.com"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(ttl_seconds=30)


# =============================================================================
# Seed data
# =============================================================================

@dataclass
class Seed:
    project: Project
    other_project: Project
    category: ProjectCategory
    second_category: ProjectCategory
    inactive_category: ProjectCategory
    options: list[CategoryOption]
    inactive_option: CategoryOption
    todo: KanbanColumn
    doing: KanbanColumn
    task: KanbanTask
    source: TicketSource


@pytest.fixture
async def seed(session_factory) -> Seed:
    """A project with two active categories, one inactive, and a small board.

    Written through its own session so tests load fresh rows.
    """
    async with session_factory() as db:
        return await _seed(db)


async def _seed(db: AsyncSession) -> Seed:
    project = Project(name="Service Desk", product="ITSM", country="IN")
    other_project = Project(name="Network Ops")
    db.add_all([project, other_project])
    await db.flush()

    # Inserted out of order to exercise sorting
    second_category = ProjectCategory(project_id=project.id, name="Module", sort_order=2)
    category = ProjectCategory(project_id=project.id, name="Work Type", sort_order=1)
    inactive_category = ProjectCategory(
        project_id=project.id, name="Legacy", sort_order=0, is_active=False
    )
    db.add_all([second_category, category, inactive_category])
    await db.flush()

    options = [
        CategoryOption(category_id=category.id, option_name="Incident", option_value="incident", sort_order=3),
        CategoryOption(category_id=category.id, option_name="Change", option_value="change", sort_order=1),
        CategoryOption(category_id=category.id, option_name="Request", option_value="request", sort_order=2),
    ]
    inactive_option = CategoryOption(
        category_id=category.id, option_name="Retired", option_value="retired", sort_order=0, is_active=False
    )
    db.add_all(options + [inactive_option])

    todo = KanbanColumn(project_id=project.id, name="To Do", sort_order=0)
    doing = KanbanColumn(project_id=project.id, name="In Progress", sort_order=1)
    db.add_all([todo, doing])
    await db.flush()

    task = KanbanTask(
        project_id=project.id,
        column_id=todo.id,
        title="Rotate certificates",
        created_by=USER_EMAIL,
        sort_order=0,
    )
    source = TicketSource(name="Remedy")
    db.add_all([task, source])
    await db.commit()

    return Seed(
        project=project,
        other_project=other_project,
        category=category,
        second_category=second_category,
        inactive_category=inactive_category,
        options=options,
        inactive_option=inactive_option,
        todo=todo,
        doing=doing,
        task=task,
        source=source,
    )


# =============================================================================
# Fake Jira
# =============================================================================

def jira_issue(key: str, summary: str = "", **fields: Any) -> dict[str, Any]:
    project = key.split("-")[0]
    return {
        "key": key,
        "fields": {
            "summary": summary or f"Issue {key}",
            "description": fields.get("description"),
            "status": {"name": fields.get("status", "Open")},
            "priority": {"name": fields.get("priority", "Medium")},
            "assignee": {"displayName": fields.get("assignee", "Dana Agent")},
            "reporter": {"displayName": "Rene Reporter"},
            "project": {"key": project},
            "issuetype": {"name": "Task"},
            "created": "2025-08-01T10:00:00.000+0000",
            "updated": "2025-08-02T10:00:00.000+0000",
        },
    }


@dataclass
class FakeJira:
    """Stands in for the Jira REST API.

    ``search`` maps a JQL string to the issues it returns; unknown queries
    return nothing. ``fail_search`` makes every search answer with 500.
    """

    search: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    issues: dict[str, dict[str, Any]] = field(default_factory=dict)
    fail_search: bool = False
    reject_auth: bool = False
    queries: list[str] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.reject_auth:
            return httpx.Response(401, json={"errorMessages": ["Unauthorized"]})

        if path.endswith("/rest/api/2/myself"):
            return httpx.Response(200, json={"emailAddress": "jira@example.com"})

        if path.endswith("/rest/api/2/search"):
            body = json.loads(request.content)
            self.queries.append(body["jql"])
            if self.fail_search:
                return httpx.Response(500, json={"errorMessages": ["Internal error"]})
            found = self.search.get(body["jql"], [])
            return httpx.Response(200, json={"issues": found, "total": len(found)})

        if "/rest/api/2/issue/" in path:
            key = path.rsplit("/", 1)[-1]
            if key in self.issues:
                return httpx.Response(200, json=self.issues[key])
            return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


# =============================================================================
# HTTP client
# =============================================================================

def make_token(email: str = USER_EMAIL, secret: str = "test-secret") -> str:
    return jwt.encode({"email": email, "name": "Test Agent"}, secret, algorithm="HS256")


@pytest.fixture
def app(session_factory, fake_jira):
    app = create_app()

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_jira_transport] = lambda: fake_jira.transport
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {make_token()}"},
    ) as client:
        yield client


@pytest.fixture
async def anon_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def csv_text() -> Callable[..., str]:
    """Build a Remedy-style CSV from header names and row tuples."""

    def build(headers: list[str], rows: list[tuple]) -> str:
        lines = [",".join(headers)]
        for row in rows:
            lines.append(",".join(_csv_cell(v) for v in row))
        return "\n".join(lines) + "\n"

    return build


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if any(c in text for c in ',"\n'):
        return '"' + text.replace('"', '""') + '"'
    return text
