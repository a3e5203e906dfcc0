"""Project category and option endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from alignzo.api.deps import Cache
from alignzo.api.v1.auth import CurrentUser
from alignzo.db import DBSession
from alignzo.services.category_resolver import CategoryResolver

router = APIRouter()


# Request/Response Models
class CategoryCreate(BaseModel):
    """Create a category on a project."""

    project_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(None, pattern="^#[0-9A-Fa-f]{6}$")
    sort_order: int = Field(default=0, ge=0)


class OptionCreate(BaseModel):
    """Create an option under a category."""

    option_name: str = Field(..., min_length=1, max_length=255)
    option_value: str | None = Field(None, max_length=255)
    sort_order: int = Field(default=0, ge=0)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    description: str | None
    color: str
    sort_order: int
    is_active: bool
    created_at: datetime


class OptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category_id: UUID
    option_name: str
    option_value: str
    sort_order: int
    is_active: bool


@router.get("/projects/{project_id}")
async def get_project_categories(
    project_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    """Active categories of a project with their active options."""
    categories = await CategoryResolver(db, cache).resolve_categories(project_id)
    return {"success": True, "data": categories}


@router.get("/resolve")
async def resolve_names(
    current_user: CurrentUser,
    db: DBSession,
    category_id: str | None = Query(None),
    option_id: str | None = Query(None),
) -> dict[str, Any]:
    """Display names for a category/option id pair; unknown ids are echoed back."""
    names = await CategoryResolver(db).resolve_names(category_id, option_id)
    return {"success": True, "data": names}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    category = await CategoryResolver(db, cache).create_category(
        project_id=body.project_id,
        name=body.name,
        description=body.description,
        color=body.color,
        sort_order=body.sort_order,
    )
    return {"success": True, "data": CategoryResponse.model_validate(category)}


@router.post("/{category_id}/options", status_code=status.HTTP_201_CREATED)
async def create_option(
    category_id: UUID,
    body: OptionCreate,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    option = await CategoryResolver(db, cache).create_option(
        category_id=category_id,
        option_name=body.option_name,
        option_value=body.option_value,
        sort_order=body.sort_order,
    )
    return {"success": True, "data": OptionResponse.model_validate(option)}


@router.delete("/options/{option_id}")
async def deactivate_option(
    option_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    option = await CategoryResolver(db, cache).deactivate_option(option_id)
    return {"success": True, "data": OptionResponse.model_validate(option)}


@router.delete("/{category_id}")
async def deactivate_category(
    category_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
    cache: Cache,
) -> dict[str, Any]:
    """Logically delete a category."""
    category = await CategoryResolver(db, cache).deactivate_category(category_id)
    return {"success": True, "data": CategoryResponse.model_validate(category)}
