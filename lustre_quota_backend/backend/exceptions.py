"""Errors raised by the quota backend."""

from typing import Optional


class QuotaBackendError(Exception):
    """Base class for quota backend errors."""


class ValidationError(QuotaBackendError):
    """A required value is missing or the request cannot be applied."""


class NotFoundError(QuotaBackendError):
    """The requested application does not exist."""


class UpstreamError(QuotaBackendError):
    """An external service (Lustre executor, identity service) failed."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        """Initialize exception with message and optional backend response code.

        Args:
            message: Error details reported by or about the service
            code: The `code` field of the service response, if one was decoded
        """
        super().__init__(message)
        self.code = code


class PersistenceError(QuotaBackendError):
    """The application store failed to read or write."""


class ConcurrentUpdateError(PersistenceError):
    """The application was changed by another request in the meantime."""


class ConfigurationError(Exception):
    """Backend configuration is incorrect."""
