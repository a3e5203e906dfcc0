"""Aggregates over uploaded tickets: per-project stats and per-user workload."""

from collections import defaultdict
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Select, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.models.project import Project
from alignzo.models.ticket import UploadedTicket

logger = structlog.get_logger()

RESOLVED_STATUSES = ("Resolved", "Closed")
PENDING_STATUSES = ("Pending", "Assigned")
ACTIVE_STATUSES = ("Pending", "Assigned", "In Progress")


def _average(values: list[float], digits: int = 2) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), digits)


def _resolution_hours(reported: datetime | None, resolved: datetime | None) -> float | None:
    if reported is None or resolved is None:
        return None
    # Drivers without timezone support hand back naive values for both
    if (reported.tzinfo is None) != (resolved.tzinfo is None):
        reported = reported.replace(tzinfo=None)
        resolved = resolved.replace(tzinfo=None)
    hours = (resolved - reported).total_seconds() / 3600
    return hours if hours >= 0 else None


class TicketAnalyticsService:
    """Ticket statistics with optional ``reported_date1`` window."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _window(query: Select, start: datetime | None, end: datetime | None) -> Select:
        if start:
            query = query.where(UploadedTicket.reported_date1 >= start)
        if end:
            query = query.where(UploadedTicket.reported_date1 <= end)
        return query

    async def project_stats(
        self,
        project_id: UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Totals, resolved/pending counts, average resolution and priorities per project."""
        counts = select(
            UploadedTicket.project_id,
            func.count(UploadedTicket.id).label("total"),
            func.count(case((UploadedTicket.status.in_(RESOLVED_STATUSES), 1))).label("resolved"),
            func.count(case((UploadedTicket.status.in_(PENDING_STATUSES), 1))).label("pending"),
        ).group_by(UploadedTicket.project_id)
        if project_id:
            counts = counts.where(UploadedTicket.project_id == project_id)
        counts = self._window(counts, start, end)
        count_rows = (await self.db.execute(counts)).all()
        if not count_rows:
            return []

        priorities = select(
            UploadedTicket.project_id,
            UploadedTicket.priority,
            func.count(UploadedTicket.id),
        ).group_by(UploadedTicket.project_id, UploadedTicket.priority)
        if project_id:
            priorities = priorities.where(UploadedTicket.project_id == project_id)
        priorities = self._window(priorities, start, end)
        distribution: dict[UUID | None, dict[str, int]] = defaultdict(dict)
        for pid, priority, count in (await self.db.execute(priorities)).all():
            distribution[pid][priority or "Unknown"] = count

        durations = select(
            UploadedTicket.project_id,
            UploadedTicket.reported_date1,
            UploadedTicket.last_resolved_date,
        ).where(
            UploadedTicket.reported_date1.is_not(None),
            UploadedTicket.last_resolved_date.is_not(None),
        )
        if project_id:
            durations = durations.where(UploadedTicket.project_id == project_id)
        durations = self._window(durations, start, end)
        hours: dict[UUID | None, list[float]] = defaultdict(list)
        for pid, reported, resolved in (await self.db.execute(durations)).all():
            value = _resolution_hours(reported, resolved)
            if value is not None:
                hours[pid].append(value)

        project_ids = [row.project_id for row in count_rows if row.project_id]
        names: dict[UUID, str] = {}
        if project_ids:
            result = await self.db.execute(
                select(Project.id, Project.name).where(Project.id.in_(project_ids))
            )
            names = {row.id: row.name for row in result}

        stats = [
            {
                "project_id": row.project_id,
                "project_name": names.get(row.project_id) if row.project_id else None,
                "total_tickets": row.total,
                "resolved_tickets": row.resolved,
                "pending_tickets": row.pending,
                "avg_resolution_hours": _average(hours[row.project_id]),
                "priority_distribution": distribution[row.project_id],
            }
            for row in count_rows
        ]
        stats.sort(key=lambda s: s["total_tickets"], reverse=True)
        return stats

    async def user_workload(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Per user (mapped email, else raw assignee): counts and average times."""
        user = func.coalesce(UploadedTicket.mapped_user_email, UploadedTicket.assignee)
        query = select(
            user.label("user"),
            UploadedTicket.status,
            UploadedTicket.reported_date1,
            UploadedTicket.last_resolved_date,
            UploadedTicket.mttr_seconds,
            UploadedTicket.mtti_seconds,
        ).where(user.is_not(None))
        query = self._window(query, start, end)
        rows = (await self.db.execute(query)).all()

        buckets: dict[str, dict[str, Any]] = {}
        for row in rows:
            bucket = buckets.setdefault(
                row.user,
                {"total": 0, "resolved": 0, "active": 0, "hours": [], "mttr": [], "mtti": []},
            )
            bucket["total"] += 1
            if row.status in RESOLVED_STATUSES:
                bucket["resolved"] += 1
            elif row.status in ACTIVE_STATUSES:
                bucket["active"] += 1
            value = _resolution_hours(row.reported_date1, row.last_resolved_date)
            if value is not None:
                bucket["hours"].append(value)
            if row.mttr_seconds is not None:
                bucket["mttr"].append(row.mttr_seconds / 60)
            if row.mtti_seconds is not None:
                bucket["mtti"].append(row.mtti_seconds / 60)

        workload = [
            {
                "user": name,
                "total_tickets": b["total"],
                "resolved_tickets": b["resolved"],
                "active_tickets": b["active"],
                "avg_resolution_hours": _average(b["hours"]),
                "avg_mttr_minutes": _average(b["mttr"]),
                "avg_mtti_minutes": _average(b["mtti"]),
            }
            for name, b in buckets.items()
        ]
        workload.sort(key=lambda w: (-w["total_tickets"], w["user"]))
        logger.debug("ticket_workload_computed", users=len(workload))
        return workload
