"""Error taxonomy shared by the admission and ingestion layers.

Every error carries the HTTP status it maps to; ``app.main`` registers a
single handler that renders them as ``{"error": <name>, "detail": <message>}``.
"""
from typing import Optional


class SbomWatchError(Exception):
    """Base error for SBOMWatch."""

    status_code: int = 500
    error_code: str = "InternalError"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict[str, str]] = None):
        self.detail = detail or self.__class__.__doc__ or self.error_code
        self.headers = headers
        super().__init__(self.detail)


class MissingCredential(SbomWatchError):
    """No bearer credential was supplied."""

    status_code = 401
    error_code = "MissingCredential"


class InvalidCredential(SbomWatchError):
    """The bearer credential was not accepted by any verifier."""

    status_code = 401
    error_code = "InvalidCredential"


class RateLimitExceeded(SbomWatchError):
    """Rate limit exceeded."""

    status_code = 429
    error_code = "RateLimitExceeded"

    def __init__(self, detail: Optional[str] = None, reset_at: Optional[float] = None, headers=None):
        super().__init__(detail, headers=headers)
        self.reset_at = reset_at


class InvalidRequest(SbomWatchError):
    """The request is missing required fields or is malformed."""

    status_code = 400
    error_code = "InvalidRequest"


class NotFound(SbomWatchError):
    """The referenced resource does not exist."""

    status_code = 404
    error_code = "NotFound"


class Conflict(SbomWatchError):
    """The resource already exists."""

    status_code = 409
    error_code = "Conflict"


class DependencyDegraded(SbomWatchError):
    """An external collaborator failed; the caller continues with reduced fidelity."""

    status_code = 503
    error_code = "DependencyDegraded"


class InternalError(SbomWatchError):
    """Unexpected persistence failure."""

    status_code = 500
    error_code = "InternalError"
