"""
OAuth Connector: connect, callback code exchange, refresh and disconnect.

CALLBACK CONTRACT: exchange_code() is driven by a browser redirect, so it
never raises. Every path ends in a CallbackOutcome whose redirect_url points
at the tenant's integration page with either ?success=true or ?error=<msg>.

STATE PARAMETER: base64(JSON {teamId, teamSlug}). Recoverable, not signed.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import quote, urlencode

from flask import current_app

from ..extensions import db
from ..models import Tenant
from app.time_utils import parse_iso_datetime, utcnow
from .credential_store import CredentialStore, TokenSet
from .integration_errors import (
    AuthConfigMissing,
    IntegrationError,
    InvalidState,
    ProviderRejected,
    ProviderTransportError,
    TenantNotFound,
)
from .integration_settings import IntegrationSettings
from .square_client import SquareClient

SQUARE_SCOPES = [
    "MERCHANT_PROFILE_READ",
    "ORDERS_READ",
    "ORDERS_WRITE",
    "INVENTORY_READ",
    "INVENTORY_WRITE",
    "PAYMENTS_READ",
    "PAYMENTS_WRITE",
]


@dataclass(frozen=True)
class CallbackOutcome:
    redirect_url: str
    success: bool
    message: str | None = None


def encode_state(tenant: Tenant) -> str:
    payload = json.dumps({"teamId": tenant.id, "teamSlug": tenant.slug})
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_state(state: str | None) -> dict:
    if not state:
        raise InvalidState("Missing state parameter")
    try:
        # A '+' sent unescaped in a query string arrives as a space
        raw = base64.b64decode(state.replace(" ", "+"), validate=True)
        decoded = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise InvalidState("Invalid state parameter")

    if not isinstance(decoded, dict) or not decoded.get("teamId") or not decoded.get("teamSlug"):
        raise InvalidState("Invalid state parameter")
    return decoded


def integration_page_url(tenant_slug: str, **params: str) -> str:
    return f"/teams/{quote(str(tenant_slug), safe='')}/square?{urlencode(params)}"


class OAuthConnector:
    def __init__(self, settings: IntegrationSettings, client: SquareClient, store: CredentialStore):
        self._settings = settings
        self._client = client
        self._store = store

    def _require_credentials(self) -> None:
        if not self._settings.has_square_credentials:
            raise AuthConfigMissing("Square credentials are not configured")

    def build_authorization_url(self, tenant: Tenant) -> str:
        self._require_credentials()
        return self._client.authorize_url({
            "client_id": self._settings.square_app_id,
            "scope": " ".join(SQUARE_SCOPES),
            "state": encode_state(tenant),
            "session": "false",
            "redirect_uri": self._settings.callback_url(tenant.slug),
        })

    def _token_set(self, data: dict, *, fallback_refresh: str | None = None) -> TokenSet:
        access_token = data.get("access_token")
        if not access_token:
            raise ProviderTransportError("Square token response did not include an access token")

        expires_at: datetime | None = None
        if data.get("expires_at"):
            expires_at = parse_iso_datetime(str(data["expires_at"]))
        elif data.get("expires_in"):
            expires_at = utcnow() + timedelta(seconds=int(data["expires_in"]))

        return TokenSet(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or fallback_refresh,
            expires_at=expires_at,
        )

    def exchange_code(
        self,
        tenant_slug: str,
        *,
        code: str | None,
        state: str | None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> CallbackOutcome:
        try:
            tenant = self._exchange(tenant_slug, code, state, error, error_description)
        except IntegrationError as exc:
            current_app.logger.warning("Square callback failed for tenant %s: %s", tenant_slug, exc.message)
            return CallbackOutcome(
                redirect_url=integration_page_url(tenant_slug, error=exc.message),
                success=False,
                message=exc.message,
            )
        except Exception:
            current_app.logger.exception("Unexpected error in Square callback for tenant %s", tenant_slug)
            db.session.rollback()
            message = "An unexpected error occurred"
            return CallbackOutcome(
                redirect_url=integration_page_url(tenant_slug, error=message),
                success=False,
                message=message,
            )

        current_app.logger.info("Square connected for tenant %s (%s)", tenant.id, tenant.slug)
        return CallbackOutcome(redirect_url=integration_page_url(tenant_slug, success="true"), success=True)

    def _exchange(self, tenant_slug, code, state, error, error_description) -> Tenant:
        if error:
            raise IntegrationError(error_description or f"Square authorization failed: {error}", status_code=400)

        self._require_credentials()

        if not code or not state:
            raise InvalidState("Missing required parameters")

        decoded = decode_state(state)
        if decoded["teamSlug"] != tenant_slug:
            raise InvalidState("Invalid state parameter")

        tenant = db.session.query(Tenant).filter_by(id=decoded["teamId"], slug=tenant_slug).first()
        if not tenant:
            raise TenantNotFound("Team not found")

        data = self._client.obtain_token({
            "client_id": self._settings.square_app_id,
            "client_secret": self._settings.square_app_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self._settings.callback_url(tenant_slug),
        })
        self._store.set_tokens(tenant.id, self._token_set(data))
        return tenant

    def refresh_if_expiring(self, tenant_id: int, *, now: datetime | None = None) -> TokenSet | None:
        """
        Refresh the access token when it expires within the configured margin.

        Returns the tokens to use, or None when the tenant is not connected.
        """
        tokens = self._store.get_tokens(tenant_id)
        if tokens is None:
            return None

        now = now or utcnow()
        if not tokens.refresh_token or not tokens.expires_within(now, self._settings.token_refresh_margin_seconds):
            return tokens

        if not self._settings.has_square_credentials:
            current_app.logger.warning("Cannot refresh Square token for tenant %s: credentials not configured", tenant_id)
            return tokens

        data = self._client.obtain_token({
            "client_id": self._settings.square_app_id,
            "client_secret": self._settings.square_app_secret,
            "grant_type": "refresh_token",
            "refresh_token": tokens.refresh_token,
        })
        refreshed = self._token_set(data, fallback_refresh=tokens.refresh_token)
        self._store.set_tokens(tenant_id, refreshed)
        current_app.logger.info("Refreshed Square token for tenant %s", tenant_id)
        return refreshed

    def revoke(self, tenant_id: int) -> None:
        """
        Revoke the stored token at Square, then clear it locally.

        A failed revoke (ProviderRejected / ProviderTransportError) propagates
        and the stored credentials stay untouched so the user can retry.
        """
        tokens = self._store.get_tokens(tenant_id)
        if tokens is not None:
            self._require_credentials()
            try:
                self._client.revoke_token(tokens.access_token)
            except ProviderRejected as exc:
                current_app.logger.warning("Square revoke rejected for tenant %s: %s", tenant_id, exc.message)
                raise

        self._store.clear_tokens(tenant_id)
