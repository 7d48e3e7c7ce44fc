from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

class Tenant(db.Model):
    """
    Multi-tenant root: every customer account ("team") is a Tenant.

    All inventory, sales, snapshots and the POS connection belong to exactly
    one tenant. No data may cross tenant boundaries.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    integration = db.relationship(
        "TenantIntegration",
        back_populates="tenant",
        uselist=False,
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "created_at": to_utc_z(self.created_at),
        }


class TenantIntegration(db.Model):
    """
    Per-tenant POS credentials and the bound remote location.

    OWNERSHIP: only the credential store reads or writes the token columns.
    location_id is write-once; the location binder enforces it.
    """
    __tablename__ = "tenant_integrations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, unique=True, index=True)

    # Opaque secrets, null while disconnected
    access_token = db.Column(db.Text, nullable=True)
    refresh_token = db.Column(db.Text, nullable=True)
    token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    location_id = db.Column(db.String(64), nullable=True)
    location_bound_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    tenant = db.relationship("Tenant", back_populates="integration")

    @property
    def is_connected(self) -> bool:
        return bool(self.access_token)

    def __repr__(self) -> str:
        return f"<TenantIntegration tenant_id={self.tenant_id} connected={self.is_connected}>"

    def to_dict(self) -> dict:
        # Token values never leave the credential store
        return {
            "tenant_id": self.tenant_id,
            "is_connected": self.is_connected,
            "token_expires_at": to_utc_z(self.token_expires_at),
            "location_id": self.location_id,
            "location_bound_at": to_utc_z(self.location_bound_at),
            "updated_at": to_utc_z(self.updated_at),
        }
