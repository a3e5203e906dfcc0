"""Kanban board service: columns, tasks, moves, category selections and timeline."""

import copy
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Sequence
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.cache import TTLCache
from alignzo.exceptions import NotFoundError, ValidationError
from alignzo.models.kanban import (
    KanbanColumn,
    KanbanTask,
    TaskCategoryMapping,
    TaskComment,
    TaskTimeline,
)
from alignzo.models.project import CategoryOption, Project, ProjectCategory
from alignzo.services.category_resolver import CategoryResolver, parse_uuid

logger = structlog.get_logger()

# Timeline actions
CREATED = "created"
UPDATED = "updated"
ASSIGNED = "assigned"
MOVED = "moved"
COMMENTED = "commented"
LINKED_JIRA = "linked_jira"
STATUS_CHANGED = "status_changed"
PRIORITY_CHANGED = "priority_changed"
CATEGORIES_UPDATED = "categories_updated"
DUE_DATE_CHANGED = "due_date_changed"

# Plain field edits recorded as ``updated`` entries
UPDATED_FIELDS = ("title", "description", "estimated_hours", "actual_hours", "scope", "sort_order")
EDITABLE_FIELDS = frozenset(
    UPDATED_FIELDS + ("assigned_to", "priority", "status", "due_date", "jira_ticket_key")
)

CategoryPair = tuple[str, str | None]


@dataclass
class MoveResult:
    task: KanbanTask
    moved: bool
    categories_updated: bool


def _pair_key(category_id: Any, option_id: Any) -> CategoryPair:
    return str(category_id), None if option_id in (None, "") else str(option_id)


def selection_of(task: KanbanTask) -> list[CategoryPair]:
    """The task's current (category, option) selection as string ids."""
    return [_pair_key(m.category_id, m.category_option_id) for m in task.category_mappings]


def _pairs_payload(pairs: Iterable[CategoryPair]) -> list[dict[str, str | None]]:
    return [{"category_id": c, "category_option_id": o} for c, o in pairs]


def _json_value(value: Any) -> Any:
    if isinstance(value, (date, UUID)):
        return str(value)
    return value


class KanbanService:
    """Board operations. Timeline writes are best-effort and never fail a request."""

    def __init__(self, db: AsyncSession, cache: TTLCache | None = None):
        self.db = db
        self.resolver = CategoryResolver(db, cache)

    # =========================================================================
    # Columns
    # =========================================================================

    async def list_columns(self, project_id: UUID) -> Sequence[KanbanColumn]:
        result = await self.db.execute(
            select(KanbanColumn)
            .where(
                KanbanColumn.project_id == project_id,
                KanbanColumn.is_active == True,
            )
            .order_by(KanbanColumn.sort_order, KanbanColumn.name)
        )
        return result.scalars().all()

    async def create_column(
        self,
        project_id: UUID,
        name: str,
        description: str | None = None,
        color: str | None = None,
        sort_order: int | None = None,
    ) -> KanbanColumn:
        if await self.db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)
        if sort_order is None:
            sort_order = len(await self.list_columns(project_id))

        column = KanbanColumn(
            project_id=project_id,
            name=name.strip(),
            description=description,
            sort_order=sort_order,
        )
        if color:
            column.color = color
        self.db.add(column)
        await self.db.commit()
        await self.db.refresh(column)
        logger.info("kanban_column_created", column_id=str(column.id), project_id=str(project_id))
        return column

    async def get_column(self, column_id: UUID) -> KanbanColumn:
        column = await self.db.get(KanbanColumn, column_id)
        if column is None:
            raise NotFoundError("Column", column_id)
        return column

    async def get_board(self, project_id: UUID) -> list[dict[str, Any]]:
        """Active columns with their non-archived tasks, both in sort order."""
        columns = await self.list_columns(project_id)
        result = await self.db.execute(
            select(KanbanTask)
            .where(
                KanbanTask.project_id == project_id,
                KanbanTask.status != "archived",
            )
            .order_by(KanbanTask.sort_order, KanbanTask.created_at)
        )
        tasks_by_column: dict[UUID, list[KanbanTask]] = {}
        for task in result.scalars().all():
            tasks_by_column.setdefault(task.column_id, []).append(task)

        return [
            {"column": column, "tasks": tasks_by_column.get(column.id, [])}
            for column in columns
        ]

    # =========================================================================
    # Tasks
    # =========================================================================

    async def get_task(self, task_id: UUID) -> KanbanTask:
        result = await self.db.execute(select(KanbanTask).where(KanbanTask.id == task_id))
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def create_task(
        self,
        project_id: UUID,
        column_id: UUID,
        title: str,
        created_by: str,
        categories: list[dict[str, Any]] | None = None,
        **fields: Any,
    ) -> KanbanTask:
        column = await self.get_column(column_id)
        if column.project_id != project_id:
            raise ValidationError("Column does not belong to the project", field="column_id")
        pairs = await self._validate_categories(project_id, categories or [])

        task = KanbanTask(
            project_id=project_id,
            column_id=column_id,
            title=title.strip(),
            created_by=created_by,
            **fields,
        )
        task.category_mappings = [
            TaskCategoryMapping(
                category_id=UUID(category_id),
                category_option_id=UUID(option_id) if option_id else None,
                is_primary=index == 0,
                sort_order=index,
            )
            for index, (category_id, option_id) in enumerate(pairs)
        ]
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)

        logger.info("kanban_task_created", task_id=str(task.id), project_id=str(project_id))
        await self._append_timeline(
            task.id, created_by, CREATED, {"title": task.title, "column_id": str(column_id)}
        )
        return task

    async def update_task(
        self,
        task_id: UUID,
        changes: dict[str, Any],
        user_email: str,
    ) -> KanbanTask:
        """Apply field changes; each changed tracked field gets its own entry."""
        task = await self.get_task(task_id)
        entries: list[tuple[str, dict[str, Any]]] = []

        for name, new in changes.items():
            if name not in EDITABLE_FIELDS:
                raise ValidationError(f"Field cannot be updated: {name}", field=name)
            if new is None and not KanbanTask.__table__.c[name].nullable:
                raise ValidationError(f"Field cannot be empty: {name}", field=name)

        for name, new in changes.items():
            old = getattr(task, name)
            if old == new:
                continue
            setattr(task, name, new)

            if name == "assigned_to":
                entries.append((ASSIGNED, {"from_user": old, "to_user": new}))
            elif name == "priority":
                entries.append((PRIORITY_CHANGED, {"from_priority": old, "to_priority": new}))
            elif name == "status":
                entries.append((STATUS_CHANGED, {"from_status": old, "to_status": new}))
            elif name == "due_date":
                entries.append(
                    (DUE_DATE_CHANGED, {"from_date": _json_value(old), "to_date": _json_value(new)})
                )
            elif name == "jira_ticket_key" and new:
                entries.append((LINKED_JIRA, {"ticket_key": new}))
            elif name in UPDATED_FIELDS or name == "jira_ticket_key":
                entries.append(
                    (UPDATED, {"field": name, "from": _json_value(old), "to": _json_value(new)})
                )

        if not entries:
            return task

        await self.db.commit()
        await self.db.refresh(task)
        logger.info("kanban_task_updated", task_id=str(task_id), changes=[a for a, _ in entries])

        for action, details in entries:
            await self._append_timeline(task_id, user_email, action, details)
        return task

    async def archive_task(self, task_id: UUID, user_email: str) -> KanbanTask:
        return await self.update_task(task_id, {"status": "archived"}, user_email)

    async def move_task(
        self,
        task_id: UUID,
        destination_column_id: UUID,
        new_sort_order: int,
        user_email: str,
        categories: list[dict[str, Any]] | None = None,
    ) -> MoveResult:
        """Move a task to a column/position and record what changed.

        The new column and position are written unconditionally. A ``moved``
        entry is added only when the column differs; ``categories_updated``
        only when ``categories`` is given and differs from the current
        selection. Concurrent moves of one task are last-write-wins.
        """
        task = await self.get_task(task_id)
        column = await self.get_column(destination_column_id)
        if column.project_id != task.project_id:
            raise ValidationError("Column does not belong to the task's project", field="column_id")
        new_pairs = None
        if categories is not None:
            new_pairs = await self._validate_categories(task.project_id, categories)

        from_column = task.column_id
        task.column_id = destination_column_id
        task.sort_order = new_sort_order
        await self.db.commit()

        moved = from_column != destination_column_id
        logger.info(
            "kanban_task_moved",
            task_id=str(task_id),
            from_column=str(from_column),
            to_column=str(destination_column_id),
            sort_order=new_sort_order,
        )
        if moved:
            await self._append_timeline(
                task_id,
                user_email,
                MOVED,
                {
                    "from_column": str(from_column),
                    "to_column": str(destination_column_id),
                    "sort_order": new_sort_order,
                },
            )

        categories_updated = False
        if new_pairs is not None:
            categories_updated = await self._replace_categories(task, new_pairs, user_email)

        await self.db.refresh(task)
        return MoveResult(task=task, moved=moved, categories_updated=categories_updated)

    async def set_categories(
        self,
        task_id: UUID,
        categories: list[dict[str, Any]],
        user_email: str,
    ) -> KanbanTask:
        task = await self.get_task(task_id)
        pairs = await self._validate_categories(task.project_id, categories)
        if await self._replace_categories(task, pairs, user_email):
            await self.db.refresh(task)
        return task

    async def add_comment(self, task_id: UUID, user_email: str, comment: str) -> TaskComment:
        task = await self.get_task(task_id)
        comment = comment.strip()
        if not comment:
            raise ValidationError("Comment cannot be empty", field="comment")

        entry = TaskComment(task_id=task.id, user_email=user_email, comment=comment)
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)

        await self._append_timeline(task_id, user_email, COMMENTED, {"comment_id": str(entry.id)})
        return entry

    # =========================================================================
    # Category selections
    # =========================================================================

    async def _validate_categories(
        self,
        project_id: UUID,
        categories: list[dict[str, Any]],
    ) -> list[CategoryPair]:
        """Check every pair references a category of the project and one of its options."""
        pairs: list[CategoryPair] = []
        for item in categories:
            category_id = parse_uuid(item.get("category_id"))
            raw_option = item.get("category_option_id")
            option_id = parse_uuid(raw_option)
            if category_id is None:
                raise ValidationError("Invalid category id", field="categories")
            if raw_option not in (None, "") and option_id is None:
                raise ValidationError("Invalid category option id", field="categories")
            pair = _pair_key(category_id, option_id)
            if pair not in pairs:
                pairs.append(pair)

        if not pairs:
            return pairs

        category_ids = {UUID(c) for c, _ in pairs}
        result = await self.db.execute(
            select(ProjectCategory.id).where(
                ProjectCategory.id.in_(category_ids),
                ProjectCategory.project_id == project_id,
            )
        )
        known = set(result.scalars().all())
        missing = category_ids - known
        if missing:
            raise ValidationError(
                f"Categories not found in project: {', '.join(sorted(map(str, missing)))}",
                field="categories",
            )

        option_ids = {UUID(o) for _, o in pairs if o}
        if option_ids:
            result = await self.db.execute(
                select(CategoryOption.id, CategoryOption.category_id).where(
                    CategoryOption.id.in_(option_ids)
                )
            )
            owner = {row.id: str(row.category_id) for row in result}
            for category_id, option_id in pairs:
                if option_id and owner.get(UUID(option_id)) != category_id:
                    raise ValidationError(
                        f"Option {option_id} does not belong to category {category_id}",
                        field="categories",
                    )
        return pairs

    async def _replace_categories(
        self,
        task: KanbanTask,
        pairs: list[CategoryPair],
        user_email: str,
    ) -> bool:
        previous = selection_of(task)
        if set(previous) == set(pairs):
            return False

        task.category_mappings.clear()
        await self.db.flush()
        task.category_mappings.extend(
            TaskCategoryMapping(
                category_id=UUID(category_id),
                category_option_id=UUID(option_id) if option_id else None,
                is_primary=index == 0,
                sort_order=index,
            )
            for index, (category_id, option_id) in enumerate(pairs)
        )
        await self.db.commit()

        logger.info("kanban_task_categories_updated", task_id=str(task.id), count=len(pairs))
        await self._append_timeline(
            task.id,
            user_email,
            CATEGORIES_UPDATED,
            {
                "count": len(pairs),
                "categories": _pairs_payload(pairs),
                "previous": _pairs_payload(previous),
            },
        )
        return True

    # =========================================================================
    # Timeline
    # =========================================================================

    async def _append_timeline(
        self,
        task_id: UUID,
        user_email: str,
        action: str,
        details: dict[str, Any] | None,
    ) -> TaskTimeline | None:
        """Append an entry; failures are logged and swallowed."""
        entry = TaskTimeline(
            task_id=task_id,
            user_email=user_email,
            action=action,
            details=details,
        )
        try:
            entry.sequence = await self.db.scalar(
                select(func.coalesce(func.max(TaskTimeline.sequence), 0) + 1)
                .where(TaskTimeline.task_id == task_id)
            )
            self.db.add(entry)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "timeline_append_failed",
                task_id=str(task_id),
                action=action,
                error=str(e),
            )
            return None
        return entry

    async def get_timeline(self, task_id: UUID) -> list[dict[str, Any]]:
        """Entries newest first, with ids resolved to display names.

        Enrichment works on copies; stored rows are left untouched.
        """
        await self.get_task(task_id)
        result = await self.db.execute(
            select(TaskTimeline)
            .where(TaskTimeline.task_id == task_id)
            .order_by(TaskTimeline.created_at.desc(), TaskTimeline.sequence.desc())
        )
        entries = result.scalars().all()

        views = [
            {
                "id": entry.id,
                "task_id": entry.task_id,
                "user_email": entry.user_email,
                "action": entry.action,
                "details": copy.deepcopy(entry.details) if entry.details else {},
                "created_at": entry.created_at,
            }
            for entry in entries
        ]

        await self._enrich_category_updates(
            [v["details"] for v in views if v["action"] == CATEGORIES_UPDATED]
        )
        await self._enrich_moves([v["details"] for v in views if v["action"] == MOVED])
        return views

    async def _enrich_category_updates(self, details_list: list[dict[str, Any]]) -> None:
        items = [
            item
            for details in details_list
            for key in ("categories", "previous")
            for item in details.get(key) or []
            if isinstance(item, dict)
        ]
        if not items:
            return

        resolved = await self.resolver.resolve_many(
            (item.get("category_id"), item.get("category_option_id")) for item in items
        )
        for item, names in zip(items, resolved):
            item["category_name"] = names.category_name
            item["option_name"] = names.option_name

    async def _enrich_moves(self, details_list: list[dict[str, Any]]) -> None:
        column_ids = {
            u
            for details in details_list
            for key in ("from_column", "to_column")
            if (u := parse_uuid(details.get(key)))
        }
        if not column_ids:
            return

        result = await self.db.execute(
            select(KanbanColumn.id, KanbanColumn.name).where(KanbanColumn.id.in_(column_ids))
        )
        names = {row.id: row.name for row in result}
        for details in details_list:
            for key in ("from_column", "to_column"):
                column_id = parse_uuid(details.get(key))
                if column_id in names:
                    details[f"{key}_name"] = names[column_id]
