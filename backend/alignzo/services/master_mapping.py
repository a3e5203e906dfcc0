"""Master mappings: external assignee identity -> internal user email."""

from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.exceptions import DuplicateError, NotFoundError, ValidationError
from alignzo.models.ticket import TicketMasterMapping, TicketSource

logger = structlog.get_logger()


def mapping_key(value: str | None) -> str | None:
    """Lookup key for an assignee value: trimmed and lower-cased."""
    if value is None:
        return None
    key = value.strip().lower()
    return key or None


class MasterMappingService:
    """CRUD for master mappings plus the per-batch lookup table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_mappings(
        self,
        source_id: UUID | None = None,
        search: str | None = None,
        include_inactive: bool = False,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[TicketMasterMapping], int]:
        """Return one page of mappings and the total matching count."""
        query = select(TicketMasterMapping)
        if source_id:
            query = query.where(TicketMasterMapping.source_id == source_id)
        if not include_inactive:
            query = query.where(TicketMasterMapping.is_active == True)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    TicketMasterMapping.source_assignee_value.ilike(pattern),
                    TicketMasterMapping.mapped_user_email.ilike(pattern),
                )
            )

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(TicketMasterMapping.source_assignee_value)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.scalars().all(), total

    async def create_mapping(
        self,
        source_id: UUID,
        source_assignee_value: str,
        mapped_user_email: str,
    ) -> TicketMasterMapping:
        value = source_assignee_value.strip()
        email = mapped_user_email.strip().lower()
        if not value:
            raise ValidationError("Assignee value is required", field="source_assignee_value")
        if not email:
            raise ValidationError("Mapped user email is required", field="mapped_user_email")

        source = await self.db.get(TicketSource, source_id)
        if source is None:
            raise NotFoundError("Ticket source", source_id)

        existing = await self.db.execute(
            select(TicketMasterMapping.id).where(
                TicketMasterMapping.source_id == source_id,
                func.lower(TicketMasterMapping.source_assignee_value) == value.lower(),
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(
                f"Mapping already exists for '{value}' in source {source.name}",
                field="source_assignee_value",
            )

        mapping = TicketMasterMapping(
            source_id=source_id,
            source_assignee_value=value,
            mapped_user_email=email,
        )
        self.db.add(mapping)
        await self.db.commit()
        await self.db.refresh(mapping)

        logger.info(
            "master_mapping_created",
            mapping_id=str(mapping.id),
            source_id=str(source_id),
        )
        return mapping

    async def delete_mapping(self, mapping_id: UUID) -> None:
        mapping = await self.db.get(TicketMasterMapping, mapping_id)
        if mapping is None:
            raise NotFoundError("Master mapping", mapping_id)
        await self.db.delete(mapping)
        await self.db.commit()
        logger.info("master_mapping_deleted", mapping_id=str(mapping_id))

    async def build_lookup(self, source_id: UUID) -> dict[str, str]:
        """Active mappings of a source keyed by ``mapping_key``."""
        result = await self.db.execute(
            select(
                TicketMasterMapping.source_assignee_value,
                TicketMasterMapping.mapped_user_email,
            ).where(
                TicketMasterMapping.source_id == source_id,
                TicketMasterMapping.is_active == True,
            )
        )
        lookup: dict[str, str] = {}
        for value, email in result.all():
            key = mapping_key(value)
            if key:
                lookup[key] = email
        return lookup
