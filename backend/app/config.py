# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/flowy.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///flowy.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public base URL of this app (OAuth redirect URIs are built from it)
    APP_URL = os.environ.get("APP_URL", "http://localhost:4002")

    # Square application credentials
    SQUARE_APP_ID = os.environ.get("SQUARE_APP_ID", "")
    SQUARE_APP_SECRET = os.environ.get("SQUARE_APP_SECRET", "")
    SQUARE_USE_SANDBOX = _env_bool("SQUARE_USE_SANDBOX")
    SQUARE_API_VERSION = os.environ.get("SQUARE_API_VERSION", "2023-12-13")
    SQUARE_HTTP_TIMEOUT_SECONDS = float(os.environ.get("SQUARE_HTTP_TIMEOUT_SECONDS", "20"))
    SQUARE_TOKEN_REFRESH_MARGIN_SECONDS = int(os.environ.get("SQUARE_TOKEN_REFRESH_MARGIN_SECONDS", "86400"))
    SQUARE_SYNC_PAGE_LIMIT = int(os.environ.get("SQUARE_SYNC_PAGE_LIMIT", "100"))
    SQUARE_SYNC_OVERLAP_SECONDS = int(os.environ.get("SQUARE_SYNC_OVERLAP_SECONDS", "300"))

    # Batch sync driver
    SYNC_BACKFILL_DAYS = int(os.environ.get("SYNC_BACKFILL_DAYS", "7"))
    SYNC_MAX_WORKERS = int(os.environ.get("SYNC_MAX_WORKERS", "1"))
    SYNC_DEADLINE_SECONDS = int(os.environ.get("SYNC_DEADLINE_SECONDS", "840"))
    SYNC_LEASE_SECONDS = int(os.environ.get("SYNC_LEASE_SECONDS", "900"))

    # Shared secret expected in the X-Cron-Secret header of cron endpoints
    CRON_SECRET = os.environ.get("CRON_SECRET", "")
