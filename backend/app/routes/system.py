# backend/app/routes/system.py
"""
System health and version endpoints.

Health covers the database and the Square sync bookkeeping so a scheduler
or load balancer can tell a stuck sync apart from a dead process.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import SyncState, Tenant, TenantIntegration
from ..models.sync import SYNC_STATUS_FAILED
from ..services.integration import get_integration_services
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        tenant_count = db.session.query(Tenant).count()
        connected_count = (
            db.session.query(TenantIntegration)
            .filter(TenantIntegration.access_token.isnot(None))
            .count()
        )
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "tenants": tenant_count,
                "square_connected": connected_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_sync_health() -> dict:
    """
    Degraded when a tenant's last run failed or a lease outlived its expiry.
    """
    start_time = time.time()
    try:
        now = utcnow()
        failed = db.session.query(SyncState).filter_by(last_status=SYNC_STATUS_FAILED).count()
        expired_leases = (
            db.session.query(SyncState)
            .filter(SyncState.lease_token.isnot(None), SyncState.lease_expires_at < now)
            .count()
        )
        elapsed_ms = (time.time() - start_time) * 1000
        details = {
            "tenants_failed": failed,
            "expired_leases": expired_leases,
            "square_credentials_configured": get_integration_services().settings.has_square_credentials,
        }
        if failed or expired_leases:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Some tenants did not sync cleanly",
                "details": details,
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Sync health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Sync state error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    sync_health = check_sync_health()

    all_checks = [database_health, sync_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "sync": sync_health,
        },
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info; never secrets, credentials or paths."""
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "square_environment": "sandbox" if get_integration_services().settings.square_use_sandbox else "production",
        "server_time": utcnow().isoformat() + "Z",
    }
