"""Kanban board API endpoints."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from alignzo.api.deps import Cache
from alignzo.api.v1.auth import CurrentUser
from alignzo.db import DBSession
from alignzo.services.kanban import KanbanService

router = APIRouter()
logger = structlog.get_logger()


# Request/Response Models
class CategorySelection(BaseModel):
    """One selected category, optionally narrowed to one of its options."""

    category_id: str
    category_option_id: str | None = None


class ColumnCreate(BaseModel):
    project_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(None, pattern="^#[0-9A-Fa-f]{6}$")
    sort_order: int | None = Field(None, ge=0)


class TaskCreate(BaseModel):
    """Create a new task."""

    project_id: UUID
    column_id: UUID
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    priority: str = Field(default="medium", pattern="^(low|medium|high|urgent)$")
    scope: str = Field(default="project", pattern="^(personal|project)$")
    estimated_hours: float | None = Field(None, ge=0)
    due_date: date | None = None
    jira_ticket_key: str | None = Field(None, max_length=50)
    assigned_to: str | None = None
    sort_order: int = Field(default=0, ge=0)
    categories: list[CategorySelection] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    """Update a task. Only fields that are sent are applied."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    priority: str | None = Field(None, pattern="^(low|medium|high|urgent)$")
    scope: str | None = Field(None, pattern="^(personal|project)$")
    status: str | None = Field(None, pattern="^(active|completed|archived)$")
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)
    due_date: date | None = None
    jira_ticket_key: str | None = Field(None, max_length=50)
    assigned_to: str | None = None


class TaskMove(BaseModel):
    """Move a task to a column and position, optionally replacing its categories."""

    column_id: UUID
    sort_order: int = Field(..., ge=0)
    categories: list[CategorySelection] | None = None


class TaskCategoriesUpdate(BaseModel):
    categories: list[CategorySelection]


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=10000)


class ColumnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    description: str | None
    color: str
    sort_order: int


class CategoryMappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: UUID
    category_option_id: UUID | None
    is_primary: bool
    sort_order: int


class TaskResponse(BaseModel):
    """Task response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    column_id: UUID
    title: str
    description: str | None
    priority: str
    scope: str
    status: str
    estimated_hours: float | None
    actual_hours: float | None
    due_date: date | None
    jira_ticket_key: str | None
    created_by: str
    assigned_to: str | None
    sort_order: int
    category_mappings: list[CategoryMappingResponse]
    created_at: datetime
    updated_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    user_email: str
    comment: str
    created_at: datetime


def _selections(items: list[CategorySelection] | None) -> list[dict[str, Any]] | None:
    if items is None:
        return None
    return [item.model_dump() for item in items]


# Columns
@router.get("/projects/{project_id}/columns")
async def list_columns(
    project_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    columns = await KanbanService(db).list_columns(project_id)
    return {"success": True, "data": [ColumnResponse.model_validate(c) for c in columns]}


@router.post("/columns", status_code=status.HTTP_201_CREATED)
async def create_column(
    body: ColumnCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    column = await KanbanService(db).create_column(
        project_id=body.project_id,
        name=body.name,
        description=body.description,
        color=body.color,
        sort_order=body.sort_order,
    )
    return {"success": True, "data": ColumnResponse.model_validate(column)}


@router.get("/projects/{project_id}/board")
async def get_board(
    project_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    """Columns of a project with their tasks."""
    board = await KanbanService(db).get_board(project_id)
    return {
        "success": True,
        "data": [
            {
                **ColumnResponse.model_validate(entry["column"]).model_dump(),
                "tasks": [TaskResponse.model_validate(t) for t in entry["tasks"]],
            }
            for entry in board
        ],
    }


# Tasks
@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    """Create a new task."""
    fields = body.model_dump(exclude={"project_id", "column_id", "title", "categories"})
    task = await KanbanService(db, cache).create_task(
        project_id=body.project_id,
        column_id=body.column_id,
        title=body.title,
        created_by=current_user.email,
        categories=_selections(body.categories),
        **fields,
    )
    return {"success": True, "data": TaskResponse.model_validate(task)}


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    task = await KanbanService(db).get_task(task_id)
    return {"success": True, "data": TaskResponse.model_validate(task)}


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: UUID,
    body: TaskUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    """Update a task."""
    task = await KanbanService(db).update_task(
        task_id, body.model_dump(exclude_unset=True), current_user.email
    )
    return {"success": True, "data": TaskResponse.model_validate(task)}


@router.post("/tasks/{task_id}/move")
async def move_task(
    task_id: UUID,
    body: TaskMove,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    """Move a task to a different column and/or position."""
    result = await KanbanService(db, cache).move_task(
        task_id,
        body.column_id,
        body.sort_order,
        current_user.email,
        categories=_selections(body.categories),
    )
    return {
        "success": True,
        "data": TaskResponse.model_validate(result.task),
        "moved": result.moved,
        "categories_updated": result.categories_updated,
    }


@router.put("/tasks/{task_id}/categories")
async def set_task_categories(
    task_id: UUID,
    body: TaskCategoriesUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    task = await KanbanService(db).set_categories(
        task_id, _selections(body.categories), current_user.email
    )
    return {"success": True, "data": TaskResponse.model_validate(task)}


@router.delete("/tasks/{task_id}")
async def archive_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    """Archive a task; it disappears from the board but keeps its timeline."""
    task = await KanbanService(db).archive_task(task_id, current_user.email)
    return {"success": True, "data": TaskResponse.model_validate(task)}


# Comments and timeline
@router.post("/tasks/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: UUID,
    body: CommentCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    comment = await KanbanService(db).add_comment(task_id, current_user.email, body.comment)
    return {"success": True, "data": CommentResponse.model_validate(comment)}


@router.get("/tasks/{task_id}/timeline")
async def get_timeline(
    task_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    """Timeline entries, newest first, with category and column names filled in."""
    entries = await KanbanService(db).get_timeline(task_id)
    return {"success": True, "data": entries}
