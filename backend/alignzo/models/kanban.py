"""Kanban board models: columns, tasks, category selections, timeline and comments."""

from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alignzo.db.base import Base, BaseModel, JSONType, UUIDMixin


class KanbanColumn(BaseModel):
    """Board column of a project."""

    __tablename__ = "kanban_columns"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6B7280")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<KanbanColumn {self.name}>"


class KanbanTask(BaseModel):
    """Task card on the kanban board."""

    __tablename__ = "kanban_tasks"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    column_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("kanban_columns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high, urgent
    scope: Mapped[str] = mapped_column(
        String(20), nullable=False, default="project"
    )  # personal, project
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active"
    )  # active, completed, archived

    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    jira_ticket_key: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # People are identified by email, as issued by the identity provider
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Ordering within column
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    column: Mapped["KanbanColumn"] = relationship("KanbanColumn")
    category_mappings: Mapped[list["TaskCategoryMapping"]] = relationship(
        "TaskCategoryMapping",
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TaskCategoryMapping.sort_order",
    )

    def __repr__(self) -> str:
        return f"<KanbanTask {self.title[:30]}>"


class TaskCategoryMapping(BaseModel):
    """One selected (category, option) pair of a task."""

    __tablename__ = "task_category_mappings"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("kanban_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    category_option_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("category_options.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    task: Mapped["KanbanTask"] = relationship(
        "KanbanTask", back_populates="category_mappings"
    )


class TaskTimeline(Base, UUIDMixin):
    """Append-only activity record of a task.

    ``details`` shape depends on ``action``; rows are never updated.
    """

    __tablename__ = "task_timeline"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("kanban_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    # Per-task insertion counter, breaks ties between equal timestamps
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TaskComment(BaseModel):
    """Comment left on a task."""

    __tablename__ = "task_comments"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("kanban_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
