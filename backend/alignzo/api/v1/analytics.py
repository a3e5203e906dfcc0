"""Ticket analytics endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query

from alignzo.api.v1.auth import CurrentUser
from alignzo.db import DBSession
from alignzo.exceptions import ValidationError
from alignzo.services.ticket_analytics import TicketAnalyticsService

router = APIRouter()


def _check_window(start: datetime | None, end: datetime | None) -> None:
    if start and end and start > end:
        raise ValidationError("start must not be after end", field="start")


@router.get("/tickets/projects")
async def ticket_project_stats(
    current_user: CurrentUser,
    db: DBSession,
    project_id: UUID | None = None,
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
) -> dict[str, Any]:
    """Ticket counts, resolution time and priority mix per project."""
    _check_window(start, end)
    stats = await TicketAnalyticsService(db).project_stats(project_id, start, end)
    return {"success": True, "data": stats}


@router.get("/tickets/workload")
async def ticket_user_workload(
    current_user: CurrentUser,
    db: DBSession,
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
) -> dict[str, Any]:
    """Ticket load and average handling times per user."""
    _check_window(start, end)
    workload = await TicketAnalyticsService(db).user_workload(start, end)
    return {"success": True, "data": workload}
