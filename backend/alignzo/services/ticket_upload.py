"""Ticket CSV ingestion: validation, de-duplication, user mapping and bulk insert."""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

import structlog
from sqlalchemy import String, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.config import get_settings
from alignzo.exceptions import DuplicateError, NotFoundError, ValidationError
from alignzo.models.project import Project
from alignzo.models.ticket import TicketSource, UploadedTicket, UploadSession
from alignzo.services.master_mapping import MasterMappingService, mapping_key
from alignzo.services.ticket_parsing import clean_row, read_csv

logger = structlog.get_logger()

INCIDENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")

# Existing-id lookups are split to keep IN lists bounded
EXISTING_ID_CHUNK = 500

# Bounded text columns; an over-long cell rejects its row
COLUMN_LENGTHS = {
    column.name: column.type.length
    for column in UploadedTicket.__table__.columns
    if isinstance(column.type, String) and column.type.length
}


@dataclass
class RowError:
    row: int
    incident_id: str | None
    field: str | None
    code: str
    message: str


@dataclass
class UploadSummary:
    session_id: UUID
    total_rows: int
    inserted_count: int
    rejected_count: int
    errors: list[RowError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def decode_upload(data: bytes) -> str:
    """Decode an uploaded file as UTF-8, dropping a leading BOM."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("File is not valid UTF-8 text", field="file") from e


def validate_ticket(
    cleaned: dict[str, Any],
    allowed_priorities: Sequence[str],
    seen_ids: set[str],
    existing_ids: set[str],
) -> None:
    """Raise ValidationError or DuplicateError for an unacceptable row."""
    incident_id = cleaned.get("incident_id")
    if not incident_id:
        raise ValidationError("Incident ID is required", field="incident_id")
    if not INCIDENT_ID_PATTERN.match(incident_id):
        raise ValidationError(
            f"Incident ID is malformed: {incident_id}", field="incident_id"
        )

    for name, value in cleaned.items():
        limit = COLUMN_LENGTHS.get(name)
        if limit and isinstance(value, str) and len(value) > limit:
            raise ValidationError(
                f"Value too long for {name}: {len(value)} characters, maximum {limit}",
                field=name,
            )

    priority = cleaned.get("priority")
    if priority and allowed_priorities:
        if priority.upper() not in {p.upper() for p in allowed_priorities}:
            raise ValidationError(
                f"Invalid priority: {priority}. Must be one of: "
                + ", ".join(allowed_priorities),
                field="priority",
            )

    if incident_id in seen_ids:
        raise DuplicateError(
            f"Incident ID appears more than once in this file: {incident_id}",
            field="incident_id",
        )
    if incident_id in existing_ids:
        raise DuplicateError(
            f"Incident ID already exists: {incident_id}", field="incident_id"
        )


class TicketUploadService:
    """Runs a CSV upload end to end and records it as an UploadSession."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def process_upload(
        self,
        content: str,
        file_name: str,
        source_id: UUID,
        user_email: str,
        project_id: UUID | None = None,
    ) -> UploadSummary:
        """Validate every row independently and insert the accepted ones.

        ``inserted_count + rejected_count == total_rows`` always holds, and no
        two inserted rows share an incident id.
        """
        source = await self.db.get(TicketSource, source_id)
        if source is None:
            raise NotFoundError("Ticket source", source_id)
        if project_id is not None and await self.db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)

        headers, rows = read_csv(content)
        if not headers:
            raise ValidationError("CSV file has no header row", field="file")

        session = UploadSession(
            user_email=user_email,
            source_id=source_id,
            project_id=project_id,
            file_name=file_name,
            total_rows=len(rows),
            status="processing",
        )
        self.db.add(session)
        await self.db.flush()

        tz = self.settings.ticket_timezone
        cleaned_rows = [clean_row(raw, tz) for raw in rows]
        existing_ids = await self._existing_incident_ids(
            {r["incident_id"] for r in cleaned_rows if r["incident_id"]}
        )
        lookup = await MasterMappingService(self.db).build_lookup(source_id)

        accepted: list[UploadedTicket] = []
        errors: list[RowError] = []
        seen_ids: set[str] = set()

        for row_number, cleaned in enumerate(cleaned_rows, start=1):
            try:
                validate_ticket(
                    cleaned,
                    self.settings.ticket_allowed_priorities,
                    seen_ids,
                    existing_ids,
                )
            except (ValidationError, DuplicateError) as e:
                errors.append(
                    RowError(
                        row=row_number,
                        incident_id=cleaned.get("incident_id"),
                        field=e.field,
                        code=e.code,
                        message=e.message,
                    )
                )
                continue

            seen_ids.add(cleaned["incident_id"])
            assignee = mapping_key(cleaned.get("assignee"))
            accepted.append(
                UploadedTicket(
                    **cleaned,
                    source_id=source_id,
                    project_id=project_id,
                    upload_session_id=session.id,
                    mapped_user_email=lookup.get(assignee) if assignee else None,
                )
            )

        if accepted:
            self.db.add_all(accepted)

        session.processed_rows = len(rows)
        session.inserted_count = len(accepted)
        session.rejected_count = len(errors)
        session.error_details = [asdict(e) for e in errors] or None
        session.status = "completed" if accepted or not rows else "failed"
        session.completed_at = datetime.now(timezone.utc)
        await self.db.commit()

        logger.info(
            "ticket_upload_processed",
            session_id=str(session.id),
            source=source.name,
            total_rows=len(rows),
            inserted=len(accepted),
            rejected=len(errors),
        )
        return UploadSummary(
            session_id=session.id,
            total_rows=len(rows),
            inserted_count=len(accepted),
            rejected_count=len(errors),
            errors=errors,
        )

    async def _existing_incident_ids(self, candidates: set[str]) -> set[str]:
        found: set[str] = set()
        ids = sorted(candidates)
        for start in range(0, len(ids), EXISTING_ID_CHUNK):
            chunk = ids[start : start + EXISTING_ID_CHUNK]
            result = await self.db.execute(
                select(UploadedTicket.incident_id).where(
                    UploadedTicket.incident_id.in_(chunk)
                )
            )
            found.update(result.scalars().all())
        return found

    # =========================================================================
    # Sources
    # =========================================================================

    async def list_sources(self) -> Sequence[TicketSource]:
        result = await self.db.execute(select(TicketSource).order_by(TicketSource.name))
        return result.scalars().all()

    async def create_source(self, name: str, description: str | None = None) -> TicketSource:
        name = name.strip()
        if not name:
            raise ValidationError("Source name is required", field="name")
        existing = await self.db.execute(
            select(TicketSource.id).where(func.lower(TicketSource.name) == name.lower())
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(f"Ticket source already exists: {name}", field="name")

        source = TicketSource(name=name, description=description)
        self.db.add(source)
        await self.db.commit()
        await self.db.refresh(source)
        logger.info("ticket_source_created", source_id=str(source.id), name=name)
        return source

    # =========================================================================
    # Listings
    # =========================================================================

    async def list_tickets(
        self,
        source_id: UUID | None = None,
        project_id: UUID | None = None,
        status: str | None = None,
        mapped_user_email: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[UploadedTicket], int]:
        query = select(UploadedTicket)
        if source_id:
            query = query.where(UploadedTicket.source_id == source_id)
        if project_id:
            query = query.where(UploadedTicket.project_id == project_id)
        if status:
            query = query.where(UploadedTicket.status == status)
        if mapped_user_email:
            query = query.where(
                func.lower(UploadedTicket.mapped_user_email) == mapped_user_email.lower()
            )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    UploadedTicket.incident_id.ilike(pattern),
                    UploadedTicket.summary.ilike(pattern),
                    UploadedTicket.assignee.ilike(pattern),
                )
            )

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(
                UploadedTicket.reported_date1.desc().nulls_last(),
                UploadedTicket.incident_id,
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.scalars().all(), total

    async def list_sessions(
        self,
        user_email: str | None = None,
        limit: int = 20,
    ) -> Sequence[UploadSession]:
        query = select(UploadSession)
        if user_email:
            query = query.where(UploadSession.user_email == user_email)
        result = await self.db.execute(
            query.order_by(UploadSession.created_at.desc()).limit(limit)
        )
        return result.scalars().all()
