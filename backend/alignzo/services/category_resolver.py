"""Project categories, their options, and id-to-name resolution."""

from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.cache import TTLCache
from alignzo.exceptions import NotFoundError, ValidationError
from alignzo.models.project import CategoryOption, Project, ProjectCategory

logger = structlog.get_logger()

CACHE_KEY_PREFIX = "project-categories:"


def categories_cache_key(project_id: UUID | str) -> str:
    return f"{CACHE_KEY_PREFIX}{project_id}"


def parse_uuid(value: Any) -> UUID | None:
    """Return ``value`` as a UUID, or None if it is not one."""
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


@dataclass
class OptionInfo:
    id: UUID
    option_name: str
    option_value: str
    sort_order: int


@dataclass
class CategoryWithOptions:
    id: UUID
    project_id: UUID
    name: str
    description: str | None
    color: str
    sort_order: int
    options: list[OptionInfo] = field(default_factory=list)


@dataclass
class ResolvedNames:
    """Display names for a (category, option) pair.

    Unresolvable identifiers are echoed back as their own name; the
    ``*_resolved`` flags tell the two cases apart.
    """

    category_id: str | None
    category_name: str | None
    category_resolved: bool
    option_id: str | None
    option_name: str | None
    option_resolved: bool


class CategoryResolver:
    """Loads active categories with their options and reverses ids to names."""

    def __init__(self, db: AsyncSession, cache: TTLCache | None = None):
        self.db = db
        self.cache = cache

    # =========================================================================
    # Forward lookup
    # =========================================================================

    async def resolve_categories(self, project_id: UUID) -> list[CategoryWithOptions]:
        """Active categories of a project, each with its active options.

        Both levels are ordered by ``sort_order``. An unknown project yields an
        empty list, the same as a project without categories.
        """
        if self.cache is None:
            return await self._load_categories(project_id)
        return await self.cache.get_or_load(
            categories_cache_key(project_id),
            lambda: self._load_categories(project_id),
        )

    async def _load_categories(self, project_id: UUID) -> list[CategoryWithOptions]:
        result = await self.db.execute(
            select(ProjectCategory)
            .where(
                ProjectCategory.project_id == project_id,
                ProjectCategory.is_active == True,
            )
            .order_by(ProjectCategory.sort_order, ProjectCategory.name)
        )
        categories = result.scalars().all()
        if not categories:
            return []

        options_result = await self.db.execute(
            select(CategoryOption)
            .where(
                CategoryOption.category_id.in_([c.id for c in categories]),
                CategoryOption.is_active == True,
            )
            .order_by(CategoryOption.sort_order, CategoryOption.option_name)
        )
        options_by_category: dict[UUID, list[OptionInfo]] = {}
        for option in options_result.scalars().all():
            options_by_category.setdefault(option.category_id, []).append(
                OptionInfo(
                    id=option.id,
                    option_name=option.option_name,
                    option_value=option.option_value,
                    sort_order=option.sort_order,
                )
            )

        logger.debug(
            "project_categories_loaded",
            project_id=str(project_id),
            category_count=len(categories),
        )
        return [
            CategoryWithOptions(
                id=category.id,
                project_id=category.project_id,
                name=category.name,
                description=category.description,
                color=category.color,
                sort_order=category.sort_order,
                options=options_by_category.get(category.id, []),
            )
            for category in categories
        ]

    # =========================================================================
    # Reverse lookup
    # =========================================================================

    async def resolve_names(
        self,
        category_id: Any = None,
        option_id: Any = None,
    ) -> ResolvedNames:
        """Resolve one (category, option) id pair to display names."""
        resolved = await self.resolve_many([(category_id, option_id)])
        return resolved[0]

    async def resolve_many(
        self,
        pairs: Iterable[tuple[Any, Any]],
    ) -> list[ResolvedNames]:
        """Resolve many id pairs with one query per table.

        Inactive rows still resolve, since historical records may reference
        categories that were deactivated afterwards.
        """
        pairs = list(pairs)
        category_ids = {u for u in (parse_uuid(c) for c, _ in pairs) if u}
        option_ids = {u for u in (parse_uuid(o) for _, o in pairs) if u}

        category_names: dict[UUID, str] = {}
        if category_ids:
            result = await self.db.execute(
                select(ProjectCategory.id, ProjectCategory.name).where(
                    ProjectCategory.id.in_(category_ids)
                )
            )
            category_names = {row.id: row.name for row in result}

        option_names: dict[UUID, str] = {}
        if option_ids:
            result = await self.db.execute(
                select(CategoryOption.id, CategoryOption.option_name).where(
                    CategoryOption.id.in_(option_ids)
                )
            )
            option_names = {row.id: row.option_name for row in result}

        resolved = []
        for category_id, option_id in pairs:
            category_name, category_ok = _lookup(category_names, category_id)
            option_name, option_ok = _lookup(option_names, option_id)
            resolved.append(
                ResolvedNames(
                    category_id=None if category_id is None else str(category_id),
                    category_name=category_name,
                    category_resolved=category_ok,
                    option_id=None if option_id is None else str(option_id),
                    option_name=option_name,
                    option_resolved=option_ok,
                )
            )
        return resolved

    # =========================================================================
    # Administration
    # =========================================================================

    async def create_category(
        self,
        project_id: UUID,
        name: str,
        description: str | None = None,
        color: str | None = None,
        sort_order: int = 0,
    ) -> ProjectCategory:
        name = name.strip()
        if not name:
            raise ValidationError("Category name is required", field="name")
        if await self.db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)

        category = ProjectCategory(
            project_id=project_id,
            name=name,
            description=description,
            sort_order=sort_order,
        )
        if color:
            category.color = color
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)

        self._invalidate(project_id)
        logger.info(
            "category_created",
            category_id=str(category.id),
            project_id=str(project_id),
        )
        return category

    async def create_option(
        self,
        category_id: UUID,
        option_name: str,
        option_value: str | None = None,
        sort_order: int = 0,
    ) -> CategoryOption:
        category = await self._get_category(category_id)
        option_name = option_name.strip()
        if not option_name:
            raise ValidationError("Option name is required", field="option_name")

        option = CategoryOption(
            category_id=category.id,
            option_name=option_name,
            option_value=(option_value or option_name).strip(),
            sort_order=sort_order,
        )
        self.db.add(option)
        await self.db.commit()
        await self.db.refresh(option)

        self._invalidate(category.project_id)
        logger.info(
            "category_option_created",
            option_id=str(option.id),
            category_id=str(category_id),
        )
        return option

    async def deactivate_category(self, category_id: UUID) -> ProjectCategory:
        """Logically delete a category; its rows stay for historical lookups."""
        category = await self._get_category(category_id)
        category.is_active = False
        await self.db.commit()
        await self.db.refresh(category)

        self._invalidate(category.project_id)
        logger.info("category_deactivated", category_id=str(category_id))
        return category

    async def deactivate_option(self, option_id: UUID) -> CategoryOption:
        result = await self.db.execute(
            select(CategoryOption).where(CategoryOption.id == option_id)
        )
        option = result.scalar_one_or_none()
        if option is None:
            raise NotFoundError("Category option", option_id)

        category = await self._get_category(option.category_id)
        option.is_active = False
        await self.db.commit()
        await self.db.refresh(option)

        self._invalidate(category.project_id)
        logger.info("category_option_deactivated", option_id=str(option_id))
        return option

    async def _get_category(self, category_id: UUID) -> ProjectCategory:
        result = await self.db.execute(
            select(ProjectCategory).where(ProjectCategory.id == category_id)
        )
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def _invalidate(self, project_id: UUID) -> None:
        if self.cache is not None:
            self.cache.invalidate(categories_cache_key(project_id))


def _lookup(names: dict[UUID, str], identifier: Any) -> tuple[str | None, bool]:
    if identifier is None or identifier == "":
        return None, False
    key = parse_uuid(identifier)
    if key is not None and key in names:
        return names[key], True
    return str(identifier), False
