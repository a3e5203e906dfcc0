"""Shared FastAPI dependencies."""

from typing import Annotated

import httpx
from fastapi import Depends, Request

from alignzo.cache import TTLCache


def get_cache(request: Request) -> TTLCache:
    """The application's cache instance, created in ``create_app``."""
    return request.app.state.cache


def get_jira_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outgoing Jira calls; None means the real network."""
    return None


Cache = Annotated[TTLCache, Depends(get_cache)]
JiraTransport = Annotated[httpx.AsyncBaseTransport | None, Depends(get_jira_transport)]
