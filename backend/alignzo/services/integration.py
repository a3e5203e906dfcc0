"""Per-user Jira integration settings."""

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alignzo.exceptions import NotFoundError, ValidationError
from alignzo.models.integration import UserIntegration
from alignzo.services.jira_client import JiraClient

logger = structlog.get_logger()

JIRA = "jira"


class IntegrationService:
    """Stores, verifies and hands out Jira credentials for a user."""

    def __init__(
        self,
        db: AsyncSession,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.db = db
        self.transport = transport

    async def get_jira(self, user_email: str) -> UserIntegration:
        result = await self.db.execute(
            select(UserIntegration).where(
                UserIntegration.user_email == user_email,
                UserIntegration.integration_type == JIRA,
            )
        )
        integration = result.scalar_one_or_none()
        if integration is None:
            raise NotFoundError("Jira integration", user_email)
        return integration

    async def save_jira(
        self,
        user_email: str,
        base_url: str,
        account_email: str,
        api_token: str,
    ) -> UserIntegration:
        """Verify the credentials against Jira, then create or replace them.

        Nothing is stored when verification fails.
        """
        base_url = base_url.strip().rstrip("/")
        if not base_url.startswith(("https://", "http://")):
            raise ValidationError("Base URL must start with http:// or https://", field="base_url")
        if not account_email.strip() or not api_token.strip():
            raise ValidationError("Account email and API token are required", field="api_token")

        client = JiraClient(base_url, account_email, api_token, transport=self.transport)
        await client.verify()

        result = await self.db.execute(
            select(UserIntegration).where(
                UserIntegration.user_email == user_email,
                UserIntegration.integration_type == JIRA,
            )
        )
        integration = result.scalar_one_or_none()
        if integration is None:
            integration = UserIntegration(user_email=user_email, integration_type=JIRA)
            self.db.add(integration)

        integration.base_url = base_url
        integration.user_email_integration = account_email.strip()
        integration.api_token = api_token.strip()
        integration.is_verified = True
        await self.db.commit()
        await self.db.refresh(integration)

        logger.info("jira_integration_saved", user_email=user_email, base_url=base_url)
        return integration

    async def verify_jira(self, user_email: str) -> UserIntegration:
        """Re-check stored credentials and record the outcome."""
        integration = await self.get_jira(user_email)
        client = self._client(integration)
        try:
            await client.verify()
        except Exception:
            integration.is_verified = False
            await self.db.commit()
            raise

        integration.is_verified = True
        await self.db.commit()
        await self.db.refresh(integration)
        return integration

    async def delete_jira(self, user_email: str) -> None:
        integration = await self.get_jira(user_email)
        await self.db.delete(integration)
        await self.db.commit()
        logger.info("jira_integration_deleted", user_email=user_email)

    async def jira_client_for(self, user_email: str) -> JiraClient:
        """Client for the user's verified integration; NotFound otherwise."""
        integration = await self.get_jira(user_email)
        if not integration.is_verified:
            raise NotFoundError("Verified Jira integration", user_email)
        return self._client(integration)

    def _client(self, integration: UserIntegration) -> JiraClient:
        return JiraClient(
            integration.base_url,
            integration.user_email_integration,
            integration.api_token,
            transport=self.transport,
        )
