"""Application exceptions.

Domain errors raised by services and rendered as JSON error bodies by the
handler registered in ``alignzo.main``. Each error carries a stable ``code``
and the HTTP status it maps to.
"""

from typing import Optional


class AlignzoError(Exception):
    """Base exception for Alignzo errors."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "ALIGNZO_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AlignzoError):
    """A referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, identifier: object):
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            message=f"{entity} not found: {identifier}",
            code="NOT_FOUND",
        )


class ValidationError(AlignzoError):
    """Malformed or missing required input.

    For bulk operations the error is recorded per row instead of raised,
    ``field`` names the offending column.
    """

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message=message, code="VALIDATION_ERROR")


class DuplicateError(AlignzoError):
    """Uniqueness violation, e.g. a repeated incident id in an upload batch."""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message=message, code="DUPLICATE")


class UpstreamError(AlignzoError):
    """A remote API (database REST endpoint or issue tracker) failed.

    ``upstream_status`` is the remote HTTP status when one was received.
    """

    status_code = 502

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
    ):
        self.service = service
        self.upstream_status = upstream_status
        super().__init__(
            message=f"[{service}] {message}",
            code="UPSTREAM_ERROR",
        )
