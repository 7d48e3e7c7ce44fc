# Overview: Flask API routes for a team's sales dashboard; daily totals and per-day details.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import error_response, require_tenant
from ..services import sales_service
from ..services.sales_service import SalesQueryError
from app.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/teams/<slug>/sales")


@sales_bp.get("")
@require_tenant
def daily_sales():
    """Daily totals; optional startDate / endDate (YYYY-MM-DD, inclusive)."""
    try:
        start = parse_iso_date(request.args.get("startDate"))
        end = parse_iso_date(request.args.get("endDate"))
    except ValueError:
        return error_response(400, "startDate and endDate must be ISO dates")

    try:
        totals = sales_service.daily_totals(g.tenant.id, start=start, end=end)
        return jsonify({"data": totals}), 200
    except SalesQueryError as exc:
        return error_response(400, str(exc))
    except Exception:
        current_app.logger.exception("Error fetching sales for tenant %s", g.tenant.id)
        return error_response(500, "Error fetching sales data")


@sales_bp.get("/details")
@require_tenant
def sales_details():
    raw_date = request.args.get("date")
    if not raw_date:
        return error_response(400, "Date is required")
    try:
        day = parse_iso_date(raw_date)
    except ValueError:
        return error_response(400, "Date must be an ISO date")

    try:
        sales = sales_service.sales_for_day(g.tenant.id, day)
        return jsonify({"data": [sale.to_dict(include_items=True) for sale in sales]}), 200
    except Exception:
        current_app.logger.exception("Error fetching sales details for tenant %s", g.tenant.id)
        return error_response(500, "Error fetching sales details")
