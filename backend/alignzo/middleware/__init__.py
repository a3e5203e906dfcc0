"""Middleware package."""

from alignzo.middleware.logging import LoggingMiddleware
from alignzo.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
