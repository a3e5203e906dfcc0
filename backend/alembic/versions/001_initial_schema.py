"""Initial schema: projects, categories, kanban, tickets and integrations.

Revision ID: 001
Revises:
Create Date: 2025-08-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Free-text ticket columns with their widths
TICKET_TEXT_COLUMNS = {
    "region": 255,
    "assigned_support_organization": 500,
    "assigned_group": 500,
    "vertical": 255,
    "sub_vertical": 255,
    "owner_support_organization": 500,
    "owner_group": 500,
    "owner": 255,
    "reported_source": 255,
    "user_name": 255,
    "site_group": 255,
    "operational_category_tier_1": 255,
    "operational_category_tier_2": 255,
    "operational_category_tier_3": 255,
    "product_name": 255,
    "product_categorization_tier_1": 255,
    "product_categorization_tier_2": 255,
    "product_categorization_tier_3": 255,
    "incident_type": 255,
    "department": 255,
    "company": 255,
    "vendor_ticket_number": 255,
    "resolver_group": 500,
    "service_desk_1st_assigned_group": 500,
    "submitter": 255,
    "owner_login_id": 255,
    "impact": 100,
    "vil_function": 255,
    "it_partner": 255,
}
TICKET_LONG_TEXT_COLUMNS = ("summary", "status_reason_hidden", "pending_reason", "resolution")
TICKET_DATE_COLUMNS = (
    "reported_date1",
    "responded_date",
    "last_resolved_date",
    "closed_date",
    "reopened_date",
    "service_desk_1st_assigned_date",
    "submit_date",
    "report_date",
)


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _fk(name: str, target: str, ondelete: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # Projects and their categories
    op.create_table(
        "projects",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("product", sa.String(255), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "project_categories",
        _id(),
        _fk("project_id", "projects.id", "CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=False, server_default="#3B82F6"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_project_categories_project_id", "project_categories", ["project_id"])

    op.create_table(
        "category_options",
        _id(),
        _fk("category_id", "project_categories.id", "CASCADE"),
        sa.Column("option_name", sa.String(255), nullable=False),
        sa.Column("option_value", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_category_options_category_id", "category_options", ["category_id"])

    # Kanban
    op.create_table(
        "kanban_columns",
        _id(),
        _fk("project_id", "projects.id", "CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=False, server_default="#6B7280"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kanban_columns_project_id", "kanban_columns", ["project_id"])

    op.create_table(
        "kanban_tasks",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _fk("project_id", "projects.id", "CASCADE"),
        _fk("column_id", "kanban_columns.id", "CASCADE"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("scope", sa.String(20), nullable=False, server_default="project"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("jira_ticket_key", sa.String(50), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kanban_tasks_project_id", "kanban_tasks", ["project_id"])
    op.create_index("ix_kanban_tasks_column_id", "kanban_tasks", ["column_id"])
    op.create_index("ix_kanban_tasks_assigned_to", "kanban_tasks", ["assigned_to"])

    op.create_table(
        "task_category_mappings",
        _id(),
        _fk("task_id", "kanban_tasks.id", "CASCADE"),
        _fk("category_id", "project_categories.id", "CASCADE"),
        _fk("category_option_id", "category_options.id", "SET NULL", nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_category_mappings_task_id", "task_category_mappings", ["task_id"])

    op.create_table(
        "task_timeline",
        _id(),
        _fk("task_id", "kanban_tasks.id", "CASCADE"),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("sequence", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_timeline_task_id", "task_timeline", ["task_id"])
    op.create_index("ix_task_timeline_action", "task_timeline", ["action"])

    op.create_table(
        "task_comments",
        _id(),
        _fk("task_id", "kanban_tasks.id", "CASCADE"),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"])

    # Ticket uploads
    op.create_table(
        "ticket_sources",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_ticket_sources_name"),
    )

    op.create_table(
        "upload_sessions",
        _id(),
        sa.Column("user_email", sa.String(255), nullable=False),
        _fk("source_id", "ticket_sources.id", "CASCADE"),
        _fk("project_id", "projects.id", "SET NULL", nullable=True),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inserted_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejected_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="processing"),
        sa.Column("error_details", postgresql.JSONB(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_upload_sessions_user_email", "upload_sessions", ["user_email"])

    op.create_table(
        "uploaded_tickets",
        _id(),
        _fk("source_id", "ticket_sources.id", "CASCADE"),
        _fk("project_id", "projects.id", "SET NULL", nullable=True),
        _fk("upload_session_id", "upload_sessions.id", "SET NULL", nullable=True),
        sa.Column("incident_id", sa.String(255), nullable=False),
        sa.Column("priority", sa.String(50), nullable=True),
        sa.Column("assignee", sa.String(255), nullable=True),
        sa.Column("mapped_user_email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(100), nullable=True),
        *[sa.Column(name, sa.String(width), nullable=True) for name, width in TICKET_TEXT_COLUMNS.items()],
        *[sa.Column(name, sa.Text(), nullable=True) for name in TICKET_LONG_TEXT_COLUMNS],
        *[sa.Column(name, sa.DateTime(timezone=True), nullable=True) for name in TICKET_DATE_COLUMNS],
        sa.Column("group_transfers", sa.Integer(), nullable=True),
        sa.Column("total_transfers", sa.Integer(), nullable=True),
        sa.Column("reopen_count", sa.Integer(), nullable=True),
        sa.Column("vip", sa.Boolean(), nullable=True),
        sa.Column("reported_to_vendor", sa.Boolean(), nullable=True),
        sa.Column("mttr", sa.String(50), nullable=True),
        sa.Column("mtti", sa.String(50), nullable=True),
        sa.Column("mttr_seconds", sa.Integer(), nullable=True),
        sa.Column("mtti_seconds", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_uploaded_tickets_source_id", "uploaded_tickets", ["source_id"])
    op.create_index("ix_uploaded_tickets_project_id", "uploaded_tickets", ["project_id"])
    op.create_index("ix_uploaded_tickets_incident_id", "uploaded_tickets", ["incident_id"])
    op.create_index("ix_uploaded_tickets_assignee", "uploaded_tickets", ["assignee"])
    op.create_index("ix_uploaded_tickets_mapped_user_email", "uploaded_tickets", ["mapped_user_email"])
    op.create_index("ix_uploaded_tickets_status", "uploaded_tickets", ["status"])
    op.create_index("ix_uploaded_tickets_reported_date1", "uploaded_tickets", ["reported_date1"])

    op.create_table(
        "ticket_master_mappings",
        _id(),
        _fk("source_id", "ticket_sources.id", "CASCADE"),
        sa.Column("source_assignee_value", sa.String(500), nullable=False),
        sa.Column("mapped_user_email", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "source_id", "source_assignee_value", name="uq_master_mapping_source_value"
        ),
    )
    op.create_index("ix_ticket_master_mappings_source_id", "ticket_master_mappings", ["source_id"])
    op.create_index(
        "ix_ticket_master_mappings_mapped_user_email",
        "ticket_master_mappings",
        ["mapped_user_email"],
    )

    # Integrations
    op.create_table(
        "user_integrations",
        _id(),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("integration_type", sa.String(50), nullable=False, server_default="jira"),
        sa.Column("base_url", sa.String(500), nullable=False),
        sa.Column("user_email_integration", sa.String(255), nullable=False),
        sa.Column("api_token", sa.Text(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_email", "integration_type", name="uq_user_integration_type"),
    )
    op.create_index("ix_user_integrations_user_email", "user_integrations", ["user_email"])

    op.create_table(
        "jira_project_mappings",
        _id(),
        _fk("dashboard_project_id", "projects.id", "CASCADE"),
        sa.Column("jira_project_key", sa.String(255), nullable=False),
        sa.Column("jira_project_name", sa.String(500), nullable=True),
        sa.Column("integration_user_email", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "dashboard_project_id",
            "jira_project_key",
            "integration_user_email",
            name="uq_jira_project_mapping",
        ),
    )
    op.create_index(
        "ix_jira_project_mappings_dashboard_project_id",
        "jira_project_mappings",
        ["dashboard_project_id"],
    )
    op.create_index(
        "ix_jira_project_mappings_jira_project_key", "jira_project_mappings", ["jira_project_key"]
    )
    op.create_index(
        "ix_jira_project_mappings_integration_user_email",
        "jira_project_mappings",
        ["integration_user_email"],
    )

    op.create_table(
        "jira_user_mappings",
        _id(),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("jira_assignee_name", sa.String(255), nullable=False),
        sa.Column("jira_reporter_name", sa.String(255), nullable=True),
        sa.Column("jira_project_key", sa.String(50), nullable=True),
        sa.Column("integration_user_email", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_email",
            "jira_project_key",
            "integration_user_email",
            name="uq_jira_user_mapping",
        ),
    )
    op.create_index("ix_jira_user_mappings_user_email", "jira_user_mappings", ["user_email"])
    op.create_index(
        "ix_jira_user_mappings_jira_assignee_name", "jira_user_mappings", ["jira_assignee_name"]
    )
    op.create_index(
        "ix_jira_user_mappings_jira_project_key", "jira_user_mappings", ["jira_project_key"]
    )
    op.create_index(
        "ix_jira_user_mappings_integration_user_email",
        "jira_user_mappings",
        ["integration_user_email"],
    )


def downgrade() -> None:
    op.drop_table("jira_user_mappings")
    op.drop_table("jira_project_mappings")
    op.drop_table("user_integrations")
    op.drop_table("ticket_master_mappings")
    op.drop_table("uploaded_tickets")
    op.drop_table("upload_sessions")
    op.drop_table("ticket_sources")
    op.drop_table("task_comments")
    op.drop_table("task_timeline")
    op.drop_table("task_category_mappings")
    op.drop_table("kanban_tasks")
    op.drop_table("kanban_columns")
    op.drop_table("category_options")
    op.drop_table("project_categories")
    op.drop_table("projects")
