# Overview: Flask API routes for a team's Square connection; connect, callback, disconnect and location binding.

from flask import Blueprint, current_app, g, jsonify, redirect, request

from ..decorators import error_response, integration_error_response, require_tenant
from ..extensions import db
from ..models import SyncState
from ..services.integration import get_integration_services
from ..services.integration_errors import IntegrationError


square_bp = Blueprint("square", __name__, url_prefix="/api/teams/<slug>/square")


@square_bp.get("/connect")
@require_tenant
def connect():
    """Return the Square authorization URL the browser should be sent to."""
    try:
        url = get_integration_services().connector.build_authorization_url(g.tenant)
        return jsonify({"data": {"url": url}}), 200
    except IntegrationError as exc:
        current_app.logger.error("Square connect failed for tenant %s: %s", g.tenant.id, exc.message)
        return integration_error_response(exc)


@square_bp.get("/callback")
def callback(slug: str):
    """
    OAuth redirect target.

    Always answers with a redirect to the team's Square page; failures are
    reported through ?error=<message>.
    """
    outcome = get_integration_services().connector.exchange_code(
        slug,
        code=request.args.get("code"),
        state=request.args.get("state"),
        error=request.args.get("error"),
        error_description=request.args.get("error_description"),
    )
    return redirect(outcome.redirect_url, code=302)


@square_bp.post("/disconnect")
@require_tenant
def disconnect():
    try:
        get_integration_services().connector.revoke(g.tenant.id)
        current_app.logger.info("Square disconnected for tenant %s (%s)", g.tenant.id, g.tenant.slug)
        return jsonify({"data": {"message": "Successfully disconnected from Square"}}), 200
    except IntegrationError as exc:
        return integration_error_response(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to disconnect Square for tenant %s", g.tenant.id)
        return error_response(500, "Internal Server Error")


@square_bp.get("/locations")
@require_tenant
def list_locations():
    try:
        locations = get_integration_services().locations.list_locations(g.tenant)
        return jsonify({"data": {"locations": locations}}), 200
    except IntegrationError as exc:
        return integration_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list Square locations for tenant %s", g.tenant.id)
        return error_response(500, "Internal Server Error")


@square_bp.post("/location")
@require_tenant
def select_location():
    data = request.get_json(silent=True) or {}
    try:
        integration = get_integration_services().locations.select_location(g.tenant, data.get("locationId"))
        current_app.logger.info(
            "Square location %s bound for tenant %s", integration.location_id, g.tenant.id,
        )
        return jsonify({"data": integration.to_dict()}), 200
    except IntegrationError as exc:
        return integration_error_response(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to select Square location for tenant %s", g.tenant.id)
        return error_response(500, "Internal Server Error")


@square_bp.get("/status")
@require_tenant
def status():
    integration = get_integration_services().store.get_integration(g.tenant.id)
    state = db.session.query(SyncState).filter_by(tenant_id=g.tenant.id).first()
    return jsonify({
        "data": {
            "integration": integration.to_dict(),
            "sync": state.to_dict() if state else None,
        }
    }), 200
