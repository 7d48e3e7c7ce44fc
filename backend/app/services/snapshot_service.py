# Overview: Daily inventory valuation snapshots; append-only copies of InventoryItem.value.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import InventoryItem, InventorySnapshot
from app.time_utils import local_today


def snapshot_all(tenant_id: int, *, snapshot_date: date | None = None, commit: bool = True) -> int:
    """
    Insert one InventorySnapshot per inventory item of the tenant.

    Pure append: calling this twice on the same day writes duplicate rows.
    The batch driver claims the day before calling (see sync_orchestrator).
    """
    snapshot_date = snapshot_date or local_today()

    items = db.session.query(InventoryItem).filter_by(tenant_id=tenant_id).order_by(InventoryItem.id.asc()).all()
    db.session.add_all([
        InventorySnapshot(
            inventory_item_id=item.id,
            tenant_id=tenant_id,
            value=item.value,
            snapshot_date=snapshot_date,
        )
        for item in items
    ])

    if commit:
        db.session.commit()
    return len(items)


def list_snapshots(tenant_id: int, *, start: date | None = None, end: date | None = None) -> list[InventorySnapshot]:
    query = db.session.query(InventorySnapshot).filter_by(tenant_id=tenant_id)
    if start:
        query = query.filter(InventorySnapshot.snapshot_date >= start)
    if end:
        query = query.filter(InventorySnapshot.snapshot_date <= end)
    return query.order_by(InventorySnapshot.snapshot_date.asc(), InventorySnapshot.inventory_item_id.asc()).all()
