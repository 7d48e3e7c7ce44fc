# Overview: Builds the POS integration components once per app and keeps them in app.extensions.

from __future__ import annotations

from dataclasses import dataclass

import httpx
from flask import Flask, current_app

from .credential_store import CredentialStore
from .integration_settings import IntegrationSettings
from .location_service import LocationBinder
from .oauth_service import OAuthConnector
from .order_sync_service import OrderSyncEngine
from .square_client import SquareClient
from .sync_orchestrator import SyncOrchestrator

EXTENSION_KEY = "pos_integration"


@dataclass
class IntegrationServices:
    settings: IntegrationSettings
    client: SquareClient
    store: CredentialStore
    connector: OAuthConnector
    locations: LocationBinder
    engine: OrderSyncEngine
    orchestrator: SyncOrchestrator


def build_integration(settings: IntegrationSettings, *, transport: httpx.BaseTransport | None = None) -> IntegrationServices:
    client = SquareClient(settings, transport=transport)
    store = CredentialStore()
    connector = OAuthConnector(settings, client, store)
    engine = OrderSyncEngine(settings, client, store, connector)
    return IntegrationServices(
        settings=settings,
        client=client,
        store=store,
        connector=connector,
        locations=LocationBinder(client, store),
        engine=engine,
        orchestrator=SyncOrchestrator(settings, engine),
    )


def init_integration(app: Flask, *, transport: httpx.BaseTransport | None = None) -> IntegrationServices:
    """
    Attach the integration components to the app.

    `transport` lets tests route provider calls to an httpx.MockTransport.
    """
    services = build_integration(IntegrationSettings.from_mapping(app.config), transport=transport)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_integration_services() -> IntegrationServices:
    return current_app.extensions[EXTENSION_KEY]
