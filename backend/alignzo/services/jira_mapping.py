"""Jira project and user mappings, scoped to the integration owner.

A project mapping ties a dashboard project to a Jira project key so callers
can search by project instead of by raw key. A user mapping records how a
team member appears in Jira as assignee/reporter, optionally per Jira project.
Saving an existing mapping updates it in place.
"""

from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.exceptions import NotFoundError, ValidationError
from alignzo.models.integration import JiraProjectMapping, JiraUserMapping
from alignzo.models.project import Project
from alignzo.services.ticket_search import PROJECT_KEY_PATTERN

logger = structlog.get_logger()


def normalize_project_key(value: str | None, field: str = "jira_project_key") -> str:
    key = (value or "").strip().upper()
    if not key:
        raise ValidationError("Jira project key is required", field=field)
    if not PROJECT_KEY_PATTERN.match(key):
        raise ValidationError(f"Invalid Jira project key: {key}", field=field)
    return key


class JiraMappingService:
    def __init__(self, db: AsyncSession, owner_email: str):
        self.db = db
        self.owner_email = owner_email

    # =========================================================================
    # Project mappings
    # =========================================================================

    async def list_project_mappings(
        self, dashboard_project_id: UUID | None = None
    ) -> Sequence[JiraProjectMapping]:
        query = select(JiraProjectMapping).where(
            JiraProjectMapping.integration_user_email == self.owner_email
        )
        if dashboard_project_id:
            query = query.where(JiraProjectMapping.dashboard_project_id == dashboard_project_id)
        result = await self.db.execute(
            query.order_by(JiraProjectMapping.created_at.desc(), JiraProjectMapping.jira_project_key)
        )
        return result.scalars().all()

    async def save_project_mapping(
        self,
        dashboard_project_id: UUID,
        jira_project_key: str,
        jira_project_name: str | None = None,
    ) -> tuple[JiraProjectMapping, bool]:
        """Create the mapping, or update its display name if it exists.

        Returns the mapping and whether it was newly created.
        """
        key = normalize_project_key(jira_project_key)
        if await self.db.get(Project, dashboard_project_id) is None:
            raise NotFoundError("Project", dashboard_project_id)

        result = await self.db.execute(
            select(JiraProjectMapping).where(
                JiraProjectMapping.dashboard_project_id == dashboard_project_id,
                JiraProjectMapping.jira_project_key == key,
                JiraProjectMapping.integration_user_email == self.owner_email,
            )
        )
        mapping = result.scalar_one_or_none()
        created = mapping is None
        if created:
            mapping = JiraProjectMapping(
                dashboard_project_id=dashboard_project_id,
                jira_project_key=key,
                integration_user_email=self.owner_email,
            )
            self.db.add(mapping)
        mapping.jira_project_name = (jira_project_name or "").strip() or None

        await self.db.commit()
        await self.db.refresh(mapping)
        logger.info(
            "jira_project_mapping_saved",
            mapping_id=str(mapping.id),
            project_id=str(dashboard_project_id),
            jira_project_key=key,
            created=created,
        )
        return mapping, created

    async def delete_project_mapping(self, mapping_id: UUID) -> None:
        mapping = await self.db.get(JiraProjectMapping, mapping_id)
        if mapping is None or mapping.integration_user_email != self.owner_email:
            raise NotFoundError("Jira project mapping", mapping_id)
        await self.db.delete(mapping)
        await self.db.commit()
        logger.info("jira_project_mapping_deleted", mapping_id=str(mapping_id))

    async def resolve_project_key(self, dashboard_project_id: UUID) -> str:
        """Jira key of the most recent mapping for a dashboard project."""
        mappings = await self.list_project_mappings(dashboard_project_id)
        if not mappings:
            raise NotFoundError("Jira project mapping", dashboard_project_id)
        return mappings[0].jira_project_key

    # =========================================================================
    # User mappings
    # =========================================================================

    async def list_user_mappings(
        self, jira_project_key: str | None = None
    ) -> Sequence[JiraUserMapping]:
        query = select(JiraUserMapping).where(
            JiraUserMapping.integration_user_email == self.owner_email
        )
        if jira_project_key:
            query = query.where(JiraUserMapping.jira_project_key == jira_project_key.strip().upper())
        result = await self.db.execute(
            query.order_by(JiraUserMapping.user_email, JiraUserMapping.jira_project_key)
        )
        return result.scalars().all()

    async def save_user_mapping(
        self,
        user_email: str,
        jira_assignee_name: str,
        jira_reporter_name: str | None = None,
        jira_project_key: str | None = None,
    ) -> tuple[JiraUserMapping, bool]:
        """Create or update the mapping for ``(user_email, jira_project_key)``.

        A missing project key makes the mapping apply to every project.
        """
        email = user_email.strip().lower()
        assignee = jira_assignee_name.strip()
        if not email:
            raise ValidationError("User email is required", field="user_email")
        if not assignee:
            raise ValidationError("Jira assignee name is required", field="jira_assignee_name")
        key = normalize_project_key(jira_project_key) if jira_project_key else None

        # NULL keys never collide in the unique index, so match them explicitly
        key_clause = (
            JiraUserMapping.jira_project_key.is_(None)
            if key is None
            else JiraUserMapping.jira_project_key == key
        )
        result = await self.db.execute(
            select(JiraUserMapping).where(
                JiraUserMapping.user_email == email,
                JiraUserMapping.integration_user_email == self.owner_email,
                key_clause,
            )
        )
        mapping = result.scalar_one_or_none()
        created = mapping is None
        if created:
            mapping = JiraUserMapping(
                user_email=email,
                jira_project_key=key,
                integration_user_email=self.owner_email,
            )
            self.db.add(mapping)
        mapping.jira_assignee_name = assignee
        mapping.jira_reporter_name = (jira_reporter_name or "").strip() or None

        await self.db.commit()
        await self.db.refresh(mapping)
        logger.info(
            "jira_user_mapping_saved",
            mapping_id=str(mapping.id),
            jira_project_key=key,
            created=created,
        )
        return mapping, created

    async def delete_user_mapping(self, mapping_id: UUID) -> None:
        mapping = await self.db.get(JiraUserMapping, mapping_id)
        if mapping is None or mapping.integration_user_email != self.owner_email:
            raise NotFoundError("Jira user mapping", mapping_id)
        await self.db.delete(mapping)
        await self.db.commit()
        logger.info("jira_user_mapping_deleted", mapping_id=str(mapping_id))
