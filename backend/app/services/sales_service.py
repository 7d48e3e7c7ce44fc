# Overview: Read-side queries over a tenant's sales (manual and synced) for the sales dashboard.

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import selectinload

from app.extensions import db
from app.models import Sale
from app.time_utils import as_naive_utc


class SalesQueryError(Exception):
    """Raised for invalid sales query parameters."""
    pass


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def daily_totals(tenant_id: int, *, start: date | None = None, end: date | None = None) -> list[dict]:
    """
    Sales per UTC calendar day, newest day first.

    start/end are inclusive days. Grouping happens in Python so the query
    stays portable between SQLite and PostgreSQL.
    """
    if start and end and start > end:
        raise SalesQueryError("startDate must not be after endDate")

    query = db.session.query(Sale.date, Sale.total).filter(Sale.tenant_id == tenant_id)
    if start:
        query = query.filter(Sale.date >= _day_bounds(start)[0])
    if end:
        query = query.filter(Sale.date < _day_bounds(end)[1])

    days: OrderedDict[date, dict] = OrderedDict()
    for sale_date, total in query.order_by(Sale.date.desc()).all():
        day = as_naive_utc(sale_date).date()
        bucket = days.setdefault(day, {"total": Decimal("0.00"), "count": 0})
        bucket["total"] += total or Decimal("0.00")
        bucket["count"] += 1

    return [
        {
            "date": day.isoformat(),
            "totalSales": f"{bucket['total']:.2f}",
            "transactionCount": bucket["count"],
        }
        for day, bucket in days.items()
    ]


def sales_for_day(tenant_id: int, day: date) -> list[Sale]:
    day_start, day_end = _day_bounds(day)
    return (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.tenant_id == tenant_id, Sale.date >= day_start, Sale.date < day_end)
        .order_by(Sale.date.desc(), Sale.id.desc())
        .all()
    )
