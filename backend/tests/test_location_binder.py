# Overview: Pytest coverage for listing Square locations and the write-once location binding.

import pytest

from app.services.credential_store import CredentialStore
from app.services.integration_errors import (
    InvalidLocation,
    LocationAlreadyBound,
    NotConnected,
    ProviderRejected,
)
from conftest import connect


@pytest.fixture
def tenant_with_token(tenant_a):
    return connect(tenant_a, "token-a", location_id=None)


class TestListLocations:
    def test_lists_locations_with_selection_flag(self, services, tenant_with_token, square):
        locations = services.locations.list_locations(tenant_with_token)

        assert [location["id"] for location in locations] == ["L1", "L2"]
        assert all(location["isSelected"] is False for location in locations)
        assert locations[0]["address"]["locality"] == "Springfield"
        assert locations[1]["address"] is None
        assert square.calls("/v2/locations")[0].headers["Authorization"] == "Bearer token-a"

    def test_bound_location_is_selected(self, services, connected_a):
        locations = services.locations.list_locations(connected_a)
        assert {location["id"]: location["isSelected"] for location in locations} == {"L1": True, "L2": False}

    def test_not_connected(self, services, tenant_a, square):
        with pytest.raises(NotConnected):
            services.locations.list_locations(tenant_a)
        assert square.requests == []

    def test_provider_rejection_propagates(self, services, tenant_with_token, square):
        square.locations_status = 401

        with pytest.raises(ProviderRejected) as excinfo:
            services.locations.list_locations(tenant_with_token)
        assert excinfo.value.message == "Token rejected"


class TestSelectLocation:
    def test_binds_known_location(self, services, tenant_with_token):
        integration = services.locations.select_location(tenant_with_token, "L2")

        assert integration.location_id == "L2"
        assert CredentialStore().get_location_id(tenant_with_token.id) == "L2"

    def test_second_different_location_is_rejected(self, services, tenant_with_token):
        services.locations.select_location(tenant_with_token, "L1")

        with pytest.raises(LocationAlreadyBound):
            services.locations.select_location(tenant_with_token, "L2")

        assert CredentialStore().get_location_id(tenant_with_token.id) == "L1"

    def test_reselecting_same_location_is_idempotent(self, services, tenant_with_token, square):
        services.locations.select_location(tenant_with_token, "L1")
        calls_before = len(square.requests)

        integration = services.locations.select_location(tenant_with_token, "L1")

        assert integration.location_id == "L1"
        assert len(square.requests) == calls_before

    def test_unknown_location_is_rejected(self, services, tenant_with_token):
        with pytest.raises(InvalidLocation):
            services.locations.select_location(tenant_with_token, "L-OTHER-MERCHANT")
        assert CredentialStore().get_location_id(tenant_with_token.id) is None

    def test_empty_location_id(self, services, tenant_with_token):
        with pytest.raises(InvalidLocation):
            services.locations.select_location(tenant_with_token, "")

    def test_requires_connection(self, services, tenant_a):
        with pytest.raises(NotConnected):
            services.locations.select_location(tenant_a, "L1")

    def test_lost_race_to_other_location(self, services, tenant_with_token, monkeypatch):
        store = CredentialStore()
        original_bind = store.bind_location_if_unbound

        def bind_after_competitor(tenant_id, location_id):
            # Another request binds L2 between the read and the write
            original_bind(tenant_id, "L2")
            return original_bind(tenant_id, location_id)

        monkeypatch.setattr(services.locations, "_store", store)
        monkeypatch.setattr(store, "bind_location_if_unbound", bind_after_competitor)

        with pytest.raises(LocationAlreadyBound):
            services.locations.select_location(tenant_with_token, "L1")
        assert CredentialStore().get_location_id(tenant_with_token.id) == "L2"
