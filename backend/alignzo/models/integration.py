"""Per-user integration credentials and Jira project/user mappings."""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from alignzo.db.base import BaseModel


class UserIntegration(BaseModel):
    """Credentials a user stored for an external system (currently only Jira)."""

    __tablename__ = "user_integrations"
    __table_args__ = (
        UniqueConstraint(
            "user_email", "integration_type", name="uq_user_integration_type"
        ),
    )

    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    integration_type: Mapped[str] = mapped_column(String(50), nullable=False, default="jira")
    base_url: Mapped[str] = mapped_column(String(500), nullable=False)
    user_email_integration: Mapped[str] = mapped_column(String(255), nullable=False)
    api_token: Mapped[str] = mapped_column(Text, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def masked_token(self) -> str:
        """Token with everything but the last four characters hidden."""
        if len(self.api_token) <= 4:
            return "****"
        return "*" * (len(self.api_token) - 4) + self.api_token[-4:]


class JiraProjectMapping(BaseModel):
    """Links a dashboard project to a Jira project key for one integration owner."""

    __tablename__ = "jira_project_mappings"
    __table_args__ = (
        UniqueConstraint(
            "dashboard_project_id",
            "jira_project_key",
            "integration_user_email",
            name="uq_jira_project_mapping",
        ),
    )

    dashboard_project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    jira_project_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    jira_project_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    integration_user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class JiraUserMapping(BaseModel):
    """Team member email as it appears in Jira, optionally per Jira project."""

    __tablename__ = "jira_user_mappings"
    __table_args__ = (
        UniqueConstraint(
            "user_email",
            "jira_project_key",
            "integration_user_email",
            name="uq_jira_user_mapping",
        ),
    )

    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    jira_assignee_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    jira_reporter_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    jira_project_key: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    integration_user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
