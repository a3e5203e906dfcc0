"""Ticket source, CSV upload and uploaded ticket endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, File, Form, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from alignzo.api.v1.auth import CurrentUser
from alignzo.config import get_settings
from alignzo.db import DBSession
from alignzo.exceptions import ValidationError
from alignzo.services.ticket_upload import TicketUploadService, decode_upload

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class SourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None


class UploadSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_email: str
    source_id: UUID
    project_id: UUID | None
    file_name: str
    total_rows: int
    inserted_count: int
    rejected_count: int
    status: str
    error_details: list[dict[str, Any]] | None
    created_at: datetime
    completed_at: datetime | None


class UploadedTicketResponse(BaseModel):
    """Listing view of an uploaded ticket."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_id: UUID
    project_id: UUID | None
    incident_id: str
    priority: str | None
    status: str | None
    summary: str | None
    assignee: str | None
    mapped_user_email: str | None
    assigned_group: str | None
    region: str | None
    reported_date1: datetime | None
    last_resolved_date: datetime | None
    closed_date: datetime | None
    mttr_seconds: int | None
    mtti_seconds: int | None


@router.get("/sources")
async def list_sources(current_user: CurrentUser, db: DBSession) -> dict[str, Any]:
    sources = await TicketUploadService(db).list_sources()
    return {"success": True, "data": [SourceResponse.model_validate(s) for s in sources]}


@router.post("/sources", status_code=status.HTTP_201_CREATED)
async def create_source(
    body: SourceCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    source = await TicketUploadService(db).create_source(body.name, body.description)
    return {"success": True, "data": SourceResponse.model_validate(source)}


@router.post("/upload")
async def upload_tickets(
    current_user: CurrentUser,
    db: DBSession,
    file: UploadFile | None = File(None),
    source_id: UUID = Form(...),
    project_id: UUID | None = Form(None),
) -> dict[str, Any]:
    """Ingest a ticket export CSV.

    Rows are validated independently; the response lists every rejected row.
    """
    if file is None or not file.filename:
        raise ValidationError("No file provided", field="file")
    if not file.filename.lower().endswith(".csv"):
        raise ValidationError("Only CSV files are supported", field="file")

    data = await file.read(settings.ticket_upload_max_bytes + 1)
    if len(data) > settings.ticket_upload_max_bytes:
        raise ValidationError(
            f"File exceeds the {settings.ticket_upload_max_bytes} byte limit", field="file"
        )

    logger.info(
        "ticket_upload_received",
        file_name=file.filename,
        size=len(data),
        source_id=str(source_id),
    )
    summary = await TicketUploadService(db).process_upload(
        content=decode_upload(data),
        file_name=file.filename,
        source_id=source_id,
        user_email=current_user.email,
        project_id=project_id,
    )
    return {"success": True, **summary.to_dict()}


@router.get("")
async def list_tickets(
    current_user: CurrentUser,
    db: DBSession,
    source_id: UUID | None = None,
    project_id: UUID | None = None,
    status_filter: str | None = Query(None, alias="status"),
    mapped_user_email: str | None = None,
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
) -> dict[str, Any]:
    tickets, total = await TicketUploadService(db).list_tickets(
        source_id=source_id,
        project_id=project_id,
        status=status_filter,
        mapped_user_email=mapped_user_email,
        search=search,
        page=page,
        page_size=page_size,
    )
    return {
        "success": True,
        "data": [UploadedTicketResponse.model_validate(t) for t in tickets],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/sessions")
async def list_upload_sessions(
    current_user: CurrentUser,
    db: DBSession,
    mine: bool = Query(True),
    limit: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    """Recent uploads, by default only the caller's."""
    sessions = await TicketUploadService(db).list_sessions(
        user_email=current_user.email if mine else None,
        limit=limit,
    )
    return {
        "success": True,
        "data": [UploadSessionResponse.model_validate(s) for s in sessions],
    }
