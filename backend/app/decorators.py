# Overview: Request decorators and the JSON error envelope shared by API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services.integration import get_integration_services
from .services.integration_errors import IntegrationError, TenantNotFound
from .services.tenant_service import get_tenant_by_slug

CRON_SECRET_HEADER = "X-Cron-Secret"


def error_response(status_code: int, message: str, details=None):
    """Build the {error: {code, message, details?}} envelope."""
    error = {"code": status_code, "message": message}
    if details:
        error["details"] = details
    return jsonify({"error": error}), status_code


def integration_error_response(exc: IntegrationError):
    return jsonify({"error": exc.to_dict()}), exc.status_code


def require_tenant(f):
    """
    Resolve the <slug> URL segment into g.tenant.

    Unknown slugs answer 404 before the view runs. Authentication and
    team membership are checked by the fronting application.
    """
    @wraps(f)
    def decorated_function(slug, *args, **kwargs):
        try:
            g.tenant = get_tenant_by_slug(slug)
        except TenantNotFound as exc:
            return integration_error_response(exc)
        return f(*args, **kwargs)

    return decorated_function


def require_cron_secret(f):
    """
    Require the shared cron secret in the X-Cron-Secret header.

    SECURITY: when CRON_SECRET is not configured every call is rejected.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = get_integration_services().settings.cron_secret
        provided = request.headers.get(CRON_SECRET_HEADER, "")

        if not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            current_app.logger.warning("Rejected cron call to %s from %s", request.path, request.remote_addr)
            return error_response(401, "Unauthorized")

        return f(*args, **kwargs)

    return decorated_function
