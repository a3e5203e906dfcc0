"""API router package."""

from fastapi import APIRouter

from alignzo.api.v1 import (
    analytics,
    cache,
    categories,
    health,
    integrations,
    kanban,
    master_mappings,
    tickets,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(categories.router, prefix="/categories", tags=["Categories"])
router.include_router(kanban.router, prefix="/kanban", tags=["Kanban"])
router.include_router(tickets.router, prefix="/tickets", tags=["Tickets"])
router.include_router(master_mappings.router, prefix="/master-mappings", tags=["Master Mappings"])
router.include_router(integrations.router, prefix="/integrations", tags=["Integrations"])
router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
router.include_router(cache.router, prefix="/cache", tags=["Cache"])
