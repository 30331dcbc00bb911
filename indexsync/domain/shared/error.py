"""Error hierarchy for indexsync.

Error layers:
- IndexSyncError: Base class for all indexsync errors
- DomainError: Invalid input or business rule violations
- InfrastructureError: Storage, network and search engine failures

Per-job errors are contained by the worker and routed through the queue's
retry/dead-letter logic. Bootstrap errors that are not benign races propagate
to the caller and abort startup.
"""

from typing import Any

ALREADY_EXISTS_ERROR_TYPES = frozenset(
    {"resource_already_exists_exception", "index_already_exists_exception"}
)


class IndexSyncError(Exception):
    """Base class for all indexsync errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(IndexSyncError):
    """Base class for domain errors."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(IndexSyncError):
    """Base class for infrastructure/system errors."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""


class ExternalServiceError(InfrastructureError):
    """External service is unavailable or failed."""


class SearchEngineError(ExternalServiceError):
    """The search engine rejected a request or could not be reached.

    Attributes:
        status_code: HTTP status, or None when the request never got a response.
        error_type: The engine's ``error.type`` (e.g. ``resource_already_exists_exception``).
        body: Parsed response body, when there was one.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message, code="SEARCH_ENGINE_ERROR")
        self.status_code = status_code
        self.error_type = error_type
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_already_exists(self) -> bool:
        return self.error_type in ALREADY_EXISTS_ERROR_TYPES
