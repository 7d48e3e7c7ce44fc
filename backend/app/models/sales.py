from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

SOURCE_MANUAL = "MANUAL"
SOURCE_SQUARE = "SQUARE"
SOURCE_PROVIDERS = (SOURCE_MANUAL, SOURCE_SQUARE)


def _money(value) -> str | None:
    return None if value is None else f"{value:.2f}"


class Sale(db.Model):
    """
    Completed sale, entered manually or synchronized from the POS provider.

    DEDUP KEY: (tenant_id, source_provider, remote_order_id) is unique.
    Manual sales carry a NULL remote_order_id, which never collides.
    Synced sales are insert-only.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint(
            "tenant_id", "source_provider", "remote_order_id",
            name="uq_sales_tenant_source_remote_order",
        ),
        db.Index("ix_sales_tenant_date", "tenant_id", "date"),
        db.Index("ix_sales_tenant_source_date", "tenant_id", "source_provider", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    payment_type = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="COMPLETED")

    source_provider = db.Column(db.String(16), nullable=False, default=SOURCE_MANUAL)
    remote_order_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} tenant_id={self.tenant_id} remote_order_id={self.remote_order_id!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "date": to_utc_z(self.date),
            "total": _money(self.total),
            "payment_type": self.payment_type,
            "status": self.status,
            "source_provider": self.source_provider,
            "remote_order_id": self.remote_order_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale; position keeps the provider's ordering."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    sale = db.relationship("Sale", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "category": self.category,
            "notes": self.notes,
        }
