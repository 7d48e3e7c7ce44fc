"""
Location Binder: lists the tenant's Square locations and binds exactly one.

WRITE-ONCE: once TenantIntegration.location_id is set it is never changed.
Re-selecting the bound id is an idempotent success; selecting a different id
raises LocationAlreadyBound. Sale history is tied to the bound location.
"""

from __future__ import annotations

from ..models import Tenant, TenantIntegration
from .credential_store import CredentialStore
from .integration_errors import InvalidLocation, LocationAlreadyBound, NotConnected
from .square_client import SquareClient


class LocationBinder:
    def __init__(self, client: SquareClient, store: CredentialStore):
        self._client = client
        self._store = store

    def _require_token(self, tenant: Tenant) -> str:
        tokens = self._store.get_tokens(tenant.id)
        if tokens is None:
            raise NotConnected("Square is not connected")
        return tokens.access_token

    def list_locations(self, tenant: Tenant) -> list[dict]:
        access_token = self._require_token(tenant)
        bound_id = self._store.get_location_id(tenant.id)

        return [
            {
                "id": location.get("id"),
                "name": location.get("name"),
                "address": location.get("address") or None,
                "isSelected": location.get("id") == bound_id,
            }
            for location in self._client.list_locations(access_token)
        ]

    def select_location(self, tenant: Tenant, location_id: str | None) -> TenantIntegration:
        if not location_id:
            raise InvalidLocation("Location ID is required")

        access_token = self._require_token(tenant)

        bound_id = self._store.get_location_id(tenant.id)
        if bound_id == location_id:
            return self._store.get_integration(tenant.id)
        if bound_id is not None:
            raise LocationAlreadyBound(
                "A Square location is already selected for this team and cannot be changed",
                details=f"bound location: {bound_id}",
            )

        known_ids = {location.get("id") for location in self._client.list_locations(access_token)}
        if location_id not in known_ids:
            raise InvalidLocation(f"Location {location_id} was not found in the connected Square account")

        if not self._store.bind_location_if_unbound(tenant.id, location_id):
            # Lost a race against another binder; only the same id is acceptable
            if self._store.get_location_id(tenant.id) != location_id:
                raise LocationAlreadyBound(
                    "A Square location is already selected for this team and cannot be changed"
                )

        return self._store.get_integration(tenant.id)
