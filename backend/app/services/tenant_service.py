"""
Tenant Service: creation and lookup of tenants ("teams").

Every tenant gets its TenantIntegration row at creation time so the
credential store always has a row to update.

USAGE:
    from app.services.tenant_service import get_tenant_by_slug

    tenant = get_tenant_by_slug(slug)   # raises TenantNotFound
"""

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Tenant, TenantIntegration
from .integration_errors import IntegrationError, PersistenceConflict, TenantNotFound

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,62}[a-z0-9])?$")


def create_tenant(name: str, slug: str) -> Tenant:
    name = (name or "").strip()
    slug = (slug or "").strip().lower()

    if not name:
        raise IntegrationError("Tenant name is required", status_code=400)
    if not SLUG_PATTERN.match(slug):
        raise IntegrationError(
            "Slug must be lowercase letters, digits and hyphens",
            status_code=400,
            details=slug,
        )

    if db.session.query(Tenant.id).filter_by(slug=slug).first():
        raise PersistenceConflict(f"Tenant slug '{slug}' already exists")

    tenant = Tenant(name=name, slug=slug)
    tenant.integration = TenantIntegration()
    db.session.add(tenant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise PersistenceConflict(f"Tenant slug '{slug}' already exists")
    return tenant


def get_tenant_by_slug(slug: str) -> Tenant:
    tenant = db.session.query(Tenant).filter_by(slug=slug).first()
    if not tenant:
        raise TenantNotFound("Team not found")
    return tenant


def list_tenants() -> list[Tenant]:
    return db.session.query(Tenant).order_by(Tenant.id.asc()).all()
