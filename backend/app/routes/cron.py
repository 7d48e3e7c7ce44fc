# Overview: Scheduler-facing endpoints; run the batch sync or the snapshot-only pass for every tenant.

from flask import Blueprint, current_app, jsonify

from ..decorators import error_response, require_cron_secret
from ..extensions import db
from ..services.integration import get_integration_services


cron_bp = Blueprint("cron", __name__, url_prefix="/api/cron")


@cron_bp.post("/sync")
@require_cron_secret
def run_sync():
    """
    Daily snapshot plus order sync for all tenants.

    Per-tenant failures are part of the summary; only a failure of the run
    itself answers 500.
    """
    try:
        summary = get_integration_services().orchestrator.run()
        return jsonify({
            "success": True,
            "message": "Sync completed",
            "summary": summary.to_dict(),
        }), 200
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Cron sync run failed")
        return error_response(500, "Failed to sync Square orders", details=str(exc) or exc.__class__.__name__)


@cron_bp.post("/inventory-snapshot")
@require_cron_secret
def run_inventory_snapshot():
    try:
        summary = get_integration_services().orchestrator.run(sync_orders=False)
        return jsonify({
            "success": True,
            "message": "Inventory snapshots created successfully",
            "summary": summary.to_dict(),
        }), 200
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Cron inventory snapshot run failed")
        return error_response(500, "Failed to create inventory snapshots", details=str(exc) or exc.__class__.__name__)
