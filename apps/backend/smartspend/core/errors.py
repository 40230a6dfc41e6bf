"""Domain error taxonomy.

Services raise these; the API layer turns them into a failed ``ActionResult``
with the matching HTTP status. Background sweeps catch them per item.
"""

from __future__ import annotations


class SmartSpendError(Exception):
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(SmartSpendError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(SmartSpendError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(SmartSpendError):
    status_code = 404
    default_message = "Not found"


class InvalidRequest(SmartSpendError):
    status_code = 400
    default_message = "Invalid request"


class RateLimited(SmartSpendError):
    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, message: str | None = None, *, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ExternalServiceError(SmartSpendError):
    status_code = 502
    default_message = "External service failure"
