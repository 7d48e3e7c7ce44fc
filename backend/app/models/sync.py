from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

SYNC_STATUS_OK = "ok"
SYNC_STATUS_SKIPPED = "skipped"
SYNC_STATUS_FAILED = "failed"


class SyncState(db.Model):
    """
    Per-tenant order sync bookkeeping.

    checkpoint_at: created_at of the last order the sync fully accounted for.
    lease_token / lease_expires_at: run claim so that two scheduler runs never
    sync the same tenant at once.
    """
    __tablename__ = "sync_states"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, unique=True, index=True)

    checkpoint_at = db.Column(db.DateTime(timezone=True), nullable=True)

    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_status = db.Column(db.String(16), nullable=True)
    last_error = db.Column(db.Text, nullable=True)
    last_orders_created = db.Column(db.Integer, nullable=False, default=0)

    lease_token = db.Column(db.String(64), nullable=True)
    lease_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tenant = db.relationship("Tenant", backref=db.backref("sync_state", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "checkpoint_at": to_utc_z(self.checkpoint_at),
            "last_run_at": to_utc_z(self.last_run_at),
            "last_status": self.last_status,
            "last_error": self.last_error,
            "last_orders_created": self.last_orders_created,
        }
