"""Exception hierarchy shared by the services, the API and the voice tools.

Each error carries the HTTP status the API layer renders it with.
"""

from typing import Any, Optional


class OnboardingError(Exception):
    """Base class for every error raised by this package."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(OnboardingError):
    status_code = 400


class UnauthorizedError(OnboardingError):
    status_code = 401


class NotFoundError(OnboardingError):
    status_code = 404


class ConfigurationError(OnboardingError):
    """Required environment variables are missing."""


class UpstreamError(OnboardingError):
    """An external service (Square, Nango, Supabase) failed."""


class SquareAPIError(UpstreamError):
    """Square answered with a non-2xx status.

    ``errors`` is Square's list of ``{category, code, detail}`` objects.
    """

    def __init__(
        self, message: str, status: int = 0, errors: Optional[list[dict]] = None
    ) -> None:
        super().__init__(message, details=errors or [])
        self.status = status
        self.errors = errors or []

    @property
    def codes(self) -> list[str]:
        return [e.get("code", "") for e in self.errors]


class BookingConflictError(SquareAPIError):
    """The booking version sent was stale; the booking was not changed."""

    status_code = 409


class NangoAPIError(UpstreamError):
    def __init__(self, message: str, status: int = 0, body: Any = None) -> None:
        super().__init__(message, details=body)
        self.status = status
