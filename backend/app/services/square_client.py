"""
Square REST client.

Thin wrapper over one shared httpx.Client. Every call carries the
Square-Version header and the configured per-call timeout, and every failure
is mapped onto the integration error taxonomy:

- timeouts / connection errors / unreadable bodies -> ProviderTransportError
- non-2xx responses -> ProviderRejected with Square's own message
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx

from .integration_errors import ProviderRejected, ProviderTransportError
from .integration_settings import IntegrationSettings


def _provider_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0] or {}
            message = first.get("detail") or first.get("code")
            if message:
                return str(message)
        for key in ("message", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return f"Square request failed with status {status_code}"


class SquareClient:
    def __init__(self, settings: IntegrationSettings, *, transport: httpx.BaseTransport | None = None):
        self._settings = settings
        self._http = httpx.Client(
            base_url=settings.square_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Square-Version": settings.square_api_version,
            },
        )

    def close(self) -> None:
        self._http.close()

    def authorize_url(self, params: dict[str, str]) -> str:
        return f"{self._settings.square_base_url}/oauth2/authorize?{urlencode(params)}"

    def _request(self, method: str, path: str, *, json: dict | None = None, headers: dict | None = None) -> dict:
        try:
            response = self._http.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderTransportError(f"Square request timed out ({path})", details=str(exc)) from exc
        except httpx.TransportError as exc:
            raise ProviderTransportError(f"Could not reach Square ({path})", details=str(exc)) from exc

        try:
            data = response.json() if response.content else {}
        except ValueError as exc:
            if response.is_success:
                raise ProviderTransportError(f"Square returned an unreadable response ({path})") from exc
            data = {}

        if not response.is_success:
            raise ProviderRejected(
                _provider_message(data, response.status_code),
                provider_status=response.status_code,
                details=f"{method} {path} -> {response.status_code}",
            )
        return data

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def obtain_token(self, payload: dict) -> dict:
        return self._request("POST", "/oauth2/token", json=payload)

    def revoke_token(self, access_token: str) -> dict:
        return self._request(
            "POST",
            "/oauth2/revoke",
            json={"client_id": self._settings.square_app_id, "access_token": access_token},
            headers={"Authorization": f"Client {self._settings.square_app_secret}"},
        )

    # ------------------------------------------------------------------
    # Merchant data (bearer auth)
    # ------------------------------------------------------------------

    def list_locations(self, access_token: str) -> list[dict]:
        data = self._request("GET", "/v2/locations", headers={"Authorization": f"Bearer {access_token}"})
        return data.get("locations") or []

    def search_orders(self, access_token: str, body: dict) -> dict:
        return self._request(
            "POST",
            "/v2/orders/search",
            json=body,
            headers={"Authorization": f"Bearer {access_token}"},
        )
