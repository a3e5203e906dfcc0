"""Master mapping endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from alignzo.api.v1.auth import CurrentUser
from alignzo.db import DBSession
from alignzo.services.master_mapping import MasterMappingService

router = APIRouter()


class MappingCreate(BaseModel):
    source_id: UUID
    source_assignee_value: str = Field(..., min_length=1, max_length=500)
    mapped_user_email: str = Field(..., min_length=3, max_length=255)


class MappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_id: UUID
    source_assignee_value: str
    mapped_user_email: str
    is_active: bool


@router.get("")
async def list_mappings(
    current_user: CurrentUser,
    db: DBSession,
    source_id: UUID | None = None,
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
) -> dict[str, Any]:
    mappings, total = await MasterMappingService(db).list_mappings(
        source_id=source_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return {
        "success": True,
        "data": [MappingResponse.model_validate(m) for m in mappings],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mapping(
    body: MappingCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    mapping = await MasterMappingService(db).create_mapping(
        body.source_id,
        body.source_assignee_value,
        body.mapped_user_email,
    )
    return {"success": True, "data": MappingResponse.model_validate(mapping)}


@router.delete("/{mapping_id}")
async def delete_mapping(
    mapping_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    await MasterMappingService(db).delete_mapping(mapping_id)
    return {"success": True}
