"""Project, category and category option models."""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alignzo.db.base import BaseModel


class Project(BaseModel):
    """Operations project that owns categories, kanban columns and tickets."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    categories: Mapped[list["ProjectCategory"]] = relationship(
        "ProjectCategory",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project {self.name}>"


class ProjectCategory(BaseModel):
    """User-defined classification dimension attached to a project.

    Categories are never physically removed while referenced; ``is_active``
    is the delete flag.
    """

    __tablename__ = "project_categories"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3B82F6")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="categories")
    options: Mapped[list["CategoryOption"]] = relationship(
        "CategoryOption",
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<ProjectCategory {self.name} project={self.project_id}>"


class CategoryOption(BaseModel):
    """Selectable value of a category."""

    __tablename__ = "category_options"

    category_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    option_name: Mapped[str] = mapped_column(String(255), nullable=False)
    option_value: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    category: Mapped["ProjectCategory"] = relationship(
        "ProjectCategory", back_populates="options"
    )

    def __repr__(self) -> str:
        return f"<CategoryOption {self.option_name} category={self.category_id}>"
