# Overview: Flask API routes for a team's inventory valuation history (daily snapshots).

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_tenant
from ..services.snapshot_service import list_snapshots
from app.time_utils import parse_iso_date


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/teams/<slug>/inventory")


@inventory_bp.get("/snapshots")
@require_tenant
def snapshots():
    try:
        start = parse_iso_date(request.args.get("startDate"))
        end = parse_iso_date(request.args.get("endDate"))
    except ValueError:
        return error_response(400, "startDate and endDate must be ISO dates")

    rows = list_snapshots(g.tenant.id, start=start, end=end)
    return jsonify({"data": [row.to_dict() for row in rows]}), 200
