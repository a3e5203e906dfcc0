"""Jira integration settings and ticket search endpoints."""

from dataclasses import asdict
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from alignzo.api.deps import JiraTransport
from alignzo.api.v1.auth import CurrentUser
from alignzo.db import DBSession
from alignzo.models.integration import UserIntegration
from alignzo.services.integration import IntegrationService
from alignzo.services.jira_mapping import JiraMappingService
from alignzo.services.ticket_search import TicketSearch

router = APIRouter()
logger = structlog.get_logger()


class JiraCredentials(BaseModel):
    base_url: str = Field(..., min_length=8, max_length=500)
    user_email_integration: str = Field(..., min_length=3, max_length=255)
    api_token: str = Field(..., min_length=1)


class JiraSearchRequest(BaseModel):
    """Search scope is ``project_key``, or the Jira key mapped to ``project_id``."""

    project_key: str | None = None
    project_id: UUID | None = None
    search_term: str | None = None
    max_results: int | None = Field(None, ge=1, le=100)


class ProjectMappingCreate(BaseModel):
    dashboard_project_id: UUID
    jira_project_key: str = Field(..., min_length=1, max_length=255)
    jira_project_name: str | None = Field(None, max_length=500)


class ProjectMappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    dashboard_project_id: UUID
    jira_project_key: str
    jira_project_name: str | None
    created_at: datetime
    updated_at: datetime


class UserMappingCreate(BaseModel):
    user_email: str = Field(..., min_length=3, max_length=255)
    jira_assignee_name: str = Field(..., min_length=1, max_length=255)
    jira_reporter_name: str | None = Field(None, max_length=255)
    jira_project_key: str | None = Field(None, max_length=50)


class UserMappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_email: str
    jira_assignee_name: str
    jira_reporter_name: str | None
    jira_project_key: str | None
    created_at: datetime
    updated_at: datetime


class IntegrationResponse(BaseModel):
    """Stored integration with the API token masked."""

    id: UUID
    integration_type: str
    base_url: str
    user_email_integration: str
    api_token: str
    is_verified: bool
    updated_at: datetime

    @classmethod
    def from_model(cls, integration: UserIntegration) -> "IntegrationResponse":
        return cls(
            id=integration.id,
            integration_type=integration.integration_type,
            base_url=integration.base_url,
            user_email_integration=integration.user_email_integration,
            api_token=integration.masked_token,
            is_verified=integration.is_verified,
            updated_at=integration.updated_at,
        )


@router.get("/jira")
async def get_jira_integration(
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    integration = await IntegrationService(db).get_jira(current_user.email)
    return {"success": True, "data": IntegrationResponse.from_model(integration)}


@router.put("/jira")
async def save_jira_integration(
    body: JiraCredentials,
    current_user: CurrentUser,
    db: DBSession,
    transport: JiraTransport,
) -> dict[str, Any]:
    """Verify credentials against Jira and store them."""
    integration = await IntegrationService(db, transport).save_jira(
        current_user.email,
        body.base_url,
        body.user_email_integration,
        body.api_token,
    )
    return {"success": True, "data": IntegrationResponse.from_model(integration)}


@router.delete("/jira")
async def delete_jira_integration(
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    await IntegrationService(db).delete_jira(current_user.email)
    return {"success": True}


@router.post("/jira/verify")
async def verify_jira_integration(
    current_user: CurrentUser,
    db: DBSession,
    transport: JiraTransport,
) -> dict[str, Any]:
    integration = await IntegrationService(db, transport).verify_jira(current_user.email)
    return {"success": True, "data": IntegrationResponse.from_model(integration)}


@router.post("/jira/search")
async def search_jira_tickets(
    body: JiraSearchRequest,
    current_user: CurrentUser,
    db: DBSession,
    transport: JiraTransport,
) -> dict[str, Any]:
    """Find tickets by key or text, trying progressively broader queries."""
    client = await IntegrationService(db, transport).jira_client_for(current_user.email)
    project_key = body.project_key
    if not project_key and body.project_id:
        project_key = await JiraMappingService(db, current_user.email).resolve_project_key(
            body.project_id
        )
    result = await TicketSearch(client, body.max_results).search(project_key, body.search_term)
    return {"success": True, **result.to_dict()}


@router.get("/jira/issues/{key}")
async def get_jira_issue(
    key: str,
    current_user: CurrentUser,
    db: DBSession,
    transport: JiraTransport,
) -> dict[str, Any]:
    client = await IntegrationService(db, transport).jira_client_for(current_user.email)
    issue = await client.get_issue(key.upper())
    return {"success": True, "data": asdict(issue)}


# =============================================================================
# Project and user mappings
# =============================================================================

@router.get("/jira/project-mappings")
async def list_jira_project_mappings(
    current_user: CurrentUser,
    db: DBSession,
    dashboard_project_id: UUID | None = Query(None),
) -> dict[str, Any]:
    mappings = await JiraMappingService(db, current_user.email).list_project_mappings(
        dashboard_project_id
    )
    return {
        "success": True,
        "data": [ProjectMappingResponse.model_validate(m) for m in mappings],
    }


@router.post("/jira/project-mappings")
async def save_jira_project_mapping(
    body: ProjectMappingCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    """Map a dashboard project to a Jira project key, updating the name if already mapped."""
    mapping, created = await JiraMappingService(db, current_user.email).save_project_mapping(
        body.dashboard_project_id, body.jira_project_key, body.jira_project_name
    )
    return {
        "success": True,
        "created": created,
        "data": ProjectMappingResponse.model_validate(mapping),
    }


@router.delete("/jira/project-mappings/{mapping_id}")
async def delete_jira_project_mapping(
    mapping_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    await JiraMappingService(db, current_user.email).delete_project_mapping(mapping_id)
    return {"success": True}


@router.get("/jira/user-mappings")
async def list_jira_user_mappings(
    current_user: CurrentUser,
    db: DBSession,
    jira_project_key: str | None = Query(None),
) -> dict[str, Any]:
    mappings = await JiraMappingService(db, current_user.email).list_user_mappings(
        jira_project_key
    )
    return {
        "success": True,
        "data": [UserMappingResponse.model_validate(m) for m in mappings],
    }


@router.post("/jira/user-mappings")
async def save_jira_user_mapping(
    body: UserMappingCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    mapping, created = await JiraMappingService(db, current_user.email).save_user_mapping(
        body.user_email,
        body.jira_assignee_name,
        body.jira_reporter_name,
        body.jira_project_key,
    )
    return {
        "success": True,
        "created": created,
        "data": UserMappingResponse.model_validate(mapping),
    }


@router.delete("/jira/user-mappings/{mapping_id}")
async def delete_jira_user_mapping(
    mapping_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> dict[str, Any]:
    await JiraMappingService(db, current_user.email).delete_user_mapping(mapping_id)
    return {"success": True}
