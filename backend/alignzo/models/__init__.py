"""SQLAlchemy models package."""

from alignzo.models.project import CategoryOption, Project, ProjectCategory
from alignzo.models.kanban import (
    KanbanColumn,
    KanbanTask,
    TaskCategoryMapping,
    TaskComment,
    TaskTimeline,
)
from alignzo.models.ticket import (
    TicketMasterMapping,
    TicketSource,
    UploadedTicket,
    UploadSession,
)
from alignzo.models.integration import (
    JiraProjectMapping,
    JiraUserMapping,
    UserIntegration,
)

__all__ = [
    # Projects & Categories
    "Project",
    "ProjectCategory",
    "CategoryOption",
    # Kanban
    "KanbanColumn",
    "KanbanTask",
    "TaskCategoryMapping",
    "TaskComment",
    "TaskTimeline",
    # Tickets
    "TicketSource",
    "UploadSession",
    "UploadedTicket",
    "TicketMasterMapping",
    # Integrations
    "UserIntegration",
    "JiraProjectMapping",
    "JiraUserMapping",
]
