"""Ticket upload models: sources, upload sessions, uploaded tickets and master mappings."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from alignzo.db.base import BaseModel, JSONType


class TicketSource(BaseModel):
    """External ticketing system a CSV export comes from (Remedy, ServiceNow, ...)."""

    __tablename__ = "ticket_sources"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<TicketSource {self.name}>"


class UploadSession(BaseModel):
    """One CSV upload and its outcome."""

    __tablename__ = "upload_sessions"

    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    source_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ticket_sources.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inserted_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="processing"
    )  # processing, completed, failed
    error_details: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType, nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class UploadedTicket(BaseModel):
    """A ticket record ingested from an external export.

    ``incident_id`` uniqueness is enforced when a batch is validated, not by
    the database.
    """

    __tablename__ = "uploaded_tickets"

    source_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ticket_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    upload_session_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("upload_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    incident_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    region: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_support_organization: Mapped[str | None] = mapped_column(String(500), nullable=True)
    assigned_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_support_organization: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reported_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    site_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_3: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_3: Mapped[str | None] = mapped_column(String(255), nullable=True)
    incident_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignee: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    mapped_user_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    status_reason_hidden: Mapped[str | None] = mapped_column(Text, nullable=True)
    pending_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor_ticket_number: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolver_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    service_desk_1st_assigned_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    submitter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_login_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    impact: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vil_function: Mapped[str | None] = mapped_column(String(255), nullable=True)
    it_partner: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Dates (export format "MM/DD/YYYY, hh:mm:ss AM/PM")
    reported_date1: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    responded_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_resolved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reopened_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    service_desk_1st_assigned_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submit_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    report_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Counters
    group_transfers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_transfers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reopen_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Flags
    vip: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    reported_to_vendor: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Time to resolve / time to respond, raw and in seconds
    mttr: Mapped[str | None] = mapped_column(String(50), nullable=True)
    mtti: Mapped[str | None] = mapped_column(String(50), nullable=True)
    mttr_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mtti_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<UploadedTicket {self.incident_id}>"


class TicketMasterMapping(BaseModel):
    """Global translation of an external assignee identity to an internal email."""

    __tablename__ = "ticket_master_mappings"
    __table_args__ = (
        UniqueConstraint(
            "source_id", "source_assignee_value", name="uq_master_mapping_source_value"
        ),
    )

    source_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ticket_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_assignee_value: Mapped[str] = mapped_column(String(500), nullable=False)
    mapped_user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
