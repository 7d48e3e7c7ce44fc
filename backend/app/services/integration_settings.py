"""Immutable integration settings built once from the Flask config."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

SQUARE_PRODUCTION_URL = "https://connect.squareup.com"
SQUARE_SANDBOX_URL = "https://connect.squareupsandbox.com"


@dataclass(frozen=True)
class IntegrationSettings:
    app_url: str
    square_app_id: str
    square_app_secret: str
    square_use_sandbox: bool = False
    square_api_version: str = "2023-12-13"
    http_timeout_seconds: float = 20.0
    token_refresh_margin_seconds: int = 86400
    sync_page_limit: int = 100
    sync_overlap_seconds: int = 300
    backfill_days: int = 7
    max_workers: int = 1
    deadline_seconds: int = 840
    lease_seconds: int = 900
    cron_secret: str = ""

    @property
    def square_base_url(self) -> str:
        return SQUARE_SANDBOX_URL if self.square_use_sandbox else SQUARE_PRODUCTION_URL

    @property
    def has_square_credentials(self) -> bool:
        return bool(self.square_app_id and self.square_app_secret)

    def callback_url(self, tenant_slug: str) -> str:
        return f"{self.app_url.rstrip('/')}/api/teams/{tenant_slug}/square/callback"

    @classmethod
    def from_mapping(cls, config: Mapping) -> "IntegrationSettings":
        return cls(
            app_url=config.get("APP_URL", "http://localhost:4002"),
            square_app_id=config.get("SQUARE_APP_ID", "") or "",
            square_app_secret=config.get("SQUARE_APP_SECRET", "") or "",
            square_use_sandbox=bool(config.get("SQUARE_USE_SANDBOX", False)),
            square_api_version=config.get("SQUARE_API_VERSION", "2023-12-13"),
            http_timeout_seconds=float(config.get("SQUARE_HTTP_TIMEOUT_SECONDS", 20.0)),
            token_refresh_margin_seconds=int(config.get("SQUARE_TOKEN_REFRESH_MARGIN_SECONDS", 86400)),
            sync_page_limit=int(config.get("SQUARE_SYNC_PAGE_LIMIT", 100)),
            sync_overlap_seconds=int(config.get("SQUARE_SYNC_OVERLAP_SECONDS", 300)),
            backfill_days=int(config.get("SYNC_BACKFILL_DAYS", 7)),
            max_workers=max(1, int(config.get("SYNC_MAX_WORKERS", 1))),
            deadline_seconds=int(config.get("SYNC_DEADLINE_SECONDS", 840)),
            lease_seconds=int(config.get("SYNC_LEASE_SECONDS", 900)),
            cron_secret=config.get("CRON_SECRET", "") or "",
        )
