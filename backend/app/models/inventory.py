from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

class InventoryItem(db.Model):
    """
    Tenant-scoped inventory item.

    value is the current quantity on hand. Written by inventory CRUD and CSV
    import; the snapshot job only reads it.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_inventory_items_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    value = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    unit_type = db.Column(db.String(32), nullable=False)
    updated_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("inventory_items", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "value": float(self.value) if self.value is not None else None,
            "unit_type": self.unit_type,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventorySnapshot(db.Model):
    """
    Append-only, dated copy of an item's quantity for valuation trends.

    IMMUTABLE: rows are never updated or deleted.
    """
    __tablename__ = "inventory_snapshots"
    __table_args__ = (
        db.Index("ix_inventory_snapshots_tenant_date", "tenant_id", "snapshot_date"),
        db.Index("ix_inventory_snapshots_item_date", "inventory_item_id", "snapshot_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    value = db.Column(db.Numeric(14, 3), nullable=False)
    snapshot_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "tenant_id": self.tenant_id,
            "value": float(self.value),
            "snapshot_date": self.snapshot_date.isoformat(),
        }


class InventorySnapshotRun(db.Model):
    """
    Claim row for one tenant's snapshot day.

    The unique (tenant_id, snapshot_date) constraint is what keeps the batch
    driver at most once per calendar day per tenant.
    """
    __tablename__ = "inventory_snapshot_runs"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "snapshot_date", name="uq_snapshot_runs_tenant_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    snapshot_date = db.Column(db.Date, nullable=False)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
