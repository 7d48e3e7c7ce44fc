# Overview: Pytest coverage for the team Square API routes and the error envelope.

import base64
import json
from urllib.parse import parse_qs, urlparse

from app.services.credential_store import CredentialStore
from conftest import connect


def state_for(tenant):
    return base64.b64encode(json.dumps({"teamId": tenant.id, "teamSlug": tenant.slug}).encode()).decode()


def redirect_params(response):
    location = urlparse(response.headers["Location"])
    return location.path, parse_qs(location.query)


class TestConnect:
    def test_returns_authorization_url(self, client, services, tenant_a):
        response = client.get('/api/teams/cafe-alpha/square/connect')

        assert response.status_code == 200
        assert response.json["data"]["url"].startswith("https://connect.squareupsandbox.com/oauth2/authorize?")

    def test_unknown_team_is_404_envelope(self, client, services):
        response = client.get('/api/teams/nobody/square/connect')

        assert response.status_code == 404
        assert response.json == {"error": {"code": 404, "message": "Team not found"}}

    def test_missing_credentials_is_500_envelope(self, client, make_services, tenant_a):
        make_services(square_app_id="", square_app_secret="")

        response = client.get('/api/teams/cafe-alpha/square/connect')

        assert response.status_code == 500
        assert response.json["error"]["message"] == "Square credentials are not configured"


class TestCallback:
    def test_success_redirects_to_team_page(self, client, services, tenant_a):
        response = client.get(
            '/api/teams/cafe-alpha/square/callback',
            query_string={"code": "auth-code", "state": state_for(tenant_a)},
        )

        assert response.status_code == 302
        assert redirect_params(response) == ("/teams/cafe-alpha/square", {"success": ["true"]})
        assert CredentialStore().get_tokens(tenant_a.id).access_token == "sq-access-new"

    def test_every_failure_is_a_redirect(self, client, services, tenant_a, square):
        square.token_status = 500
        square.token_payload = {}
        attempts = [
            {},
            {"code": "c"},
            {"code": "c", "state": "garbage"},
            {"error": "access_denied"},
            {"code": "c", "state": state_for(tenant_a)},
        ]

        for params in attempts:
            response = client.get('/api/teams/cafe-alpha/square/callback', query_string=params)
            path, query = redirect_params(response)
            assert response.status_code == 302
            assert path == "/teams/cafe-alpha/square"
            assert query["error"][0]

    def test_unknown_team_still_redirects(self, client, services):
        response = client.get('/api/teams/nobody/square/callback', query_string={"code": "c", "state": "e30="})

        assert response.status_code == 302
        assert "error" in redirect_params(response)[1]


class TestDisconnect:
    def test_disconnect_clears_tokens(self, client, services, connected_a):
        response = client.post('/api/teams/cafe-alpha/square/disconnect')

        assert response.status_code == 200
        assert response.json == {"data": {"message": "Successfully disconnected from Square"}}
        assert CredentialStore().get_tokens(connected_a.id) is None
        assert CredentialStore().get_location_id(connected_a.id) == "L1"

    def test_revoke_failure_keeps_tokens(self, client, services, connected_a, square):
        square.revoke_status = 400
        square.revoke_payload = {"message": "Access token is not valid"}

        response = client.post('/api/teams/cafe-alpha/square/disconnect')

        assert response.status_code == 400
        assert response.json["error"]["message"] == "Access token is not valid"
        assert CredentialStore().get_tokens(connected_a.id).access_token == "token-a"


class TestLocations:
    def test_list_locations(self, client, services, connected_a):
        response = client.get('/api/teams/cafe-alpha/square/locations')

        assert response.status_code == 200
        locations = response.json["data"]["locations"]
        assert [(location["id"], location["isSelected"]) for location in locations] == [("L1", True), ("L2", False)]

    def test_list_locations_not_connected(self, client, services, tenant_a):
        response = client.get('/api/teams/cafe-alpha/square/locations')

        assert response.status_code == 400
        assert response.json["error"]["message"] == "Square is not connected"

    def test_select_location_then_conflict(self, client, services, tenant_a):
        connect(tenant_a, "token-a", location_id=None)

        first = client.post('/api/teams/cafe-alpha/square/location', json={"locationId": "L2"})
        second = client.post('/api/teams/cafe-alpha/square/location', json={"locationId": "L1"})

        assert first.status_code == 200
        assert first.json["data"]["location_id"] == "L2"
        assert "access_token" not in first.json["data"]
        assert second.status_code == 409
        assert CredentialStore().get_location_id(tenant_a.id) == "L2"

    def test_select_location_requires_id(self, client, services, tenant_a):
        connect(tenant_a, "token-a", location_id=None)

        response = client.post('/api/teams/cafe-alpha/square/location', json={})

        assert response.status_code == 400
        assert response.json["error"]["message"] == "Location ID is required"


class TestStatus:
    def test_status_reports_connection_and_sync(self, client, services, connected_a):
        response = client.get('/api/teams/cafe-alpha/square/status')

        data = response.json["data"]
        assert response.status_code == 200
        assert data["integration"]["is_connected"] is True
        assert data["integration"]["location_id"] == "L1"
        assert data["sync"] is None
