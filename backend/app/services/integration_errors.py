"""
POS integration error taxonomy.

Every error carries the HTTP status the API layer should answer with, so
routes translate them into the {error: {code, message, details}} envelope
without re-classifying.
"""

from __future__ import annotations


class IntegrationError(Exception):
    """Base class for POS integration failures."""
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None, details: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.status_code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class AuthConfigMissing(IntegrationError):
    """Provider application credentials are not configured."""
    status_code = 500


class NotConnected(IntegrationError):
    """The operation needs an access token the tenant does not have."""
    status_code = 400


class ProviderTransportError(IntegrationError):
    """Network failure, timeout or unreadable response from the provider."""
    status_code = 502


class ProviderRejected(IntegrationError):
    """Provider answered non-2xx; message is the provider's own explanation."""
    status_code = 502

    def __init__(self, message: str, *, provider_status: int, details: str | None = None):
        # provider 4xx -> 400, anything else -> 502
        status = 400 if 400 <= provider_status < 500 else 502
        super().__init__(message, status_code=status, details=details)
        self.provider_status = provider_status


class PersistenceConflict(IntegrationError):
    """Uniqueness violation (duplicate remote order id, duplicate name)."""
    status_code = 409


class InvalidState(IntegrationError):
    """OAuth state parameter could not be decoded or does not match."""
    status_code = 400


class LocationAlreadyBound(IntegrationError):
    """Tenant is already bound to a different remote location."""
    status_code = 409


class InvalidLocation(IntegrationError):
    """Requested location id is missing or unknown to the provider."""
    status_code = 400


class TenantNotFound(IntegrationError):
    status_code = 404
