"""
Order Sync Engine: incremental pull of completed Square orders into Sales.

FLOW (per tenant):
1. Skip tenants without an access token or a bound location.
2. Window:
   - with a persisted checkpoint: closed_at >= checkpoint - overlap. The
     checkpoint is a completion time, so an order opened before it and
     completed after it (a bar tab) is still picked up.
   - otherwise (first run): created_at >= latest synced sale date - overlap,
     else created_at >= now - backfill window.
3. Page through /v2/orders/search (COMPLETED, oldest first on the window
   field) until Square stops returning a cursor.
4. Insert one Sale + SaleItems per unseen order id. The unique
   (tenant_id, source_provider, remote_order_id) key makes reruns and
   overlapping windows idempotent.

FAILURE ISOLATION:
- One order failing to write is logged and skipped; the page continues.
- A page failing to load raises and aborts this tenant's run.
- The checkpoint only advances after every page was read, and never past an
  order that failed to write while that order is still inside the backfill
  window. Older failures are logged as abandoned and the checkpoint moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import SOURCE_SQUARE
from ..models.sync import SYNC_STATUS_OK, SYNC_STATUS_SKIPPED
from app.time_utils import as_naive_utc, parse_iso_datetime, to_rfc3339_millis, utcnow
from .concurrency import get_or_create_sync_state, run_with_retry
from .credential_store import CredentialStore
from .integration_errors import ProviderTransportError
from .integration_settings import IntegrationSettings
from .oauth_service import OAuthConnector
from .square_client import SquareClient

CENTS = Decimal("0.01")
SQUARE_PAYMENT_TYPE = "SQUARE"

WINDOW_CREATED_AT = "created_at"
WINDOW_CLOSED_AT = "closed_at"


def money_to_decimal(money: dict | None) -> Decimal:
    """Square Money (minor units) -> Decimal currency amount."""
    if not money:
        return Decimal("0.00")
    amount = money.get("amount") or 0
    return (Decimal(str(amount)) / 100).quantize(CENTS)


def parse_quantity(raw) -> int:
    # Square sends quantities as decimal strings ("2", "1.5")
    try:
        quantity = int(Decimal(str(raw if raw not in (None, "") else "1")))
    except (InvalidOperation, ValueError, OverflowError):
        quantity = 1
    return max(quantity, 1)


def build_sale(tenant_id: int, order: dict, *, fallback_date: datetime) -> Sale:
    sale = Sale(
        tenant_id=tenant_id,
        date=parse_iso_datetime(order.get("created_at")) or fallback_date,
        total=money_to_decimal(order.get("total_money")),
        payment_type=SQUARE_PAYMENT_TYPE,
        status=order.get("state") or "COMPLETED",
        source_provider=SOURCE_SQUARE,
        remote_order_id=order["id"],
    )
    for position, line in enumerate(order.get("line_items") or []):
        sale.items.append(SaleItem(
            position=position,
            name=(line.get("name") or "Unknown Item")[:255],
            quantity=parse_quantity(line.get("quantity")),
            unit_price=money_to_decimal(line.get("base_price_money")),
            total_price=money_to_decimal(line.get("total_money")),
            category=line.get("category_id"),
            notes=line.get("note"),
        ))
    return sale


@dataclass
class SyncResult:
    tenant_id: int
    status: str = SYNC_STATUS_OK
    reason: str | None = None
    window_field: str = WINDOW_CREATED_AT
    start_at: datetime | None = None
    pages: int = 0
    orders_seen: int = 0
    orders_created: int = 0
    orders_skipped: int = 0
    orders_failed: int = 0
    checkpoint_at: datetime | None = None
    latest_seen_at: datetime | None = None
    # (window time, order id) of every order that failed to write
    failed_orders: list[tuple[datetime | None, str]] = field(default_factory=list)
    abandoned_order_ids: list[str] = field(default_factory=list)
    created_order_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "status": self.status,
            "reason": self.reason,
            "pages": self.pages,
            "orders_seen": self.orders_seen,
            "orders_created": self.orders_created,
            "orders_skipped": self.orders_skipped,
            "orders_failed": self.orders_failed,
            "abandoned_order_ids": list(self.abandoned_order_ids),
        }


class OrderSyncEngine:
    def __init__(
        self,
        settings: IntegrationSettings,
        client: SquareClient,
        store: CredentialStore,
        connector: OAuthConnector,
    ):
        self._settings = settings
        self._client = client
        self._store = store
        self._connector = connector

    def determine_window(self, tenant_id: int, now: datetime) -> tuple[str, datetime]:
        """
        Return (window field, start) for the next search.

        A persisted checkpoint is the latest completion time seen, so later
        runs filter on closed_at; the first run backfills on created_at.
        """
        overlap = timedelta(seconds=self._settings.sync_overlap_seconds)

        state = get_or_create_sync_state(tenant_id)
        if state.checkpoint_at is not None:
            return WINDOW_CLOSED_AT, as_naive_utc(state.checkpoint_at) - overlap

        latest_sale = (
            db.session.query(Sale)
            .filter_by(tenant_id=tenant_id, source_provider=SOURCE_SQUARE)
            .order_by(Sale.date.desc())
            .first()
        )
        if latest_sale:
            return WINDOW_CREATED_AT, as_naive_utc(latest_sale.date) - overlap

        return WINDOW_CREATED_AT, now - timedelta(days=self._settings.backfill_days)

    def determine_start_date(self, tenant_id: int, now: datetime) -> datetime:
        return self.determine_window(tenant_id, now)[1]

    def _search_body(self, location_id: str, window_field: str, start_at: datetime, cursor: str | None) -> dict:
        body = {
            "location_ids": [location_id],
            "limit": self._settings.sync_page_limit,
            "query": {
                "filter": {
                    "date_time_filter": {window_field: {"start_at": to_rfc3339_millis(start_at)}},
                    "state_filter": {"states": ["COMPLETED"]},
                },
                # Square requires the sort field to match the date filter
                "sort": {"sort_field": window_field.upper(), "sort_order": "ASC"},
            },
        }
        if cursor:
            body["cursor"] = cursor
        return body

    def sync(self, tenant_id: int, *, now: datetime | None = None) -> SyncResult:
        now = now or utcnow()
        result = SyncResult(tenant_id=tenant_id)

        integration = self._store.get_integration(tenant_id)
        if not integration.is_connected or not integration.location_id:
            result.status = SYNC_STATUS_SKIPPED
            result.reason = "not connected" if not integration.is_connected else "no location selected"
            return result
        location_id = integration.location_id

        tokens = self._connector.refresh_if_expiring(tenant_id, now=now)
        if tokens is None:
            result.status = SYNC_STATUS_SKIPPED
            result.reason = "not connected"
            return result

        result.window_field, result.start_at = self.determine_window(tenant_id, now)

        seen_cursors: set[str] = set()
        cursor: str | None = None

        while True:
            body = self._search_body(location_id, result.window_field, result.start_at, cursor)
            page = self._client.search_orders(tokens.access_token, body)
            result.pages += 1

            for order in page.get("orders") or []:
                self._process_order(tenant_id, order, now, result)

            cursor = page.get("cursor")
            if not cursor:
                break
            if cursor in seen_cursors:
                raise ProviderTransportError("Square returned a repeated pagination cursor")
            seen_cursors.add(cursor)

        self._save_checkpoint(tenant_id, result, now)
        current_app.logger.info(
            "Square sync for tenant %s: %s page(s), %s created, %s skipped, %s failed",
            tenant_id, result.pages, result.orders_created, result.orders_skipped, result.orders_failed,
        )
        return result

    def _process_order(self, tenant_id: int, order: dict, now: datetime, result: SyncResult) -> None:
        result.orders_seen += 1

        order_id = order.get("id")
        if not order_id:
            current_app.logger.warning("Skipping Square order without id for tenant %s", tenant_id)
            result.orders_skipped += 1
            return

        try:
            created_at = parse_iso_datetime(order.get("created_at"))
            closed_at = parse_iso_datetime(order.get("closed_at"))
        except ValueError:
            created_at = closed_at = None

        # Position on the checkpoint timeline: completion time when known
        completed_at = closed_at or created_at
        window_at = created_at if result.window_field == WINDOW_CREATED_AT else completed_at

        if window_at is not None and window_at < result.start_at:
            result.orders_skipped += 1
            return
        if completed_at is not None and (result.latest_seen_at is None or completed_at > result.latest_seen_at):
            result.latest_seen_at = completed_at

        # Orders without a total carry nothing to value
        if not order.get("total_money"):
            result.orders_skipped += 1
            return

        exists = (
            db.session.query(Sale.id)
            .filter_by(tenant_id=tenant_id, source_provider=SOURCE_SQUARE, remote_order_id=order_id)
            .first()
        )
        if exists:
            result.orders_skipped += 1
            return

        try:
            db.session.add(build_sale(tenant_id, order, fallback_date=now))
            db.session.commit()
        except IntegrityError:
            # Same remote id inserted by a concurrent run
            db.session.rollback()
            result.orders_skipped += 1
            return
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to store Square order %s for tenant %s", order_id, tenant_id)
            result.orders_failed += 1
            result.failed_orders.append((completed_at, order_id))
            return

        result.orders_created += 1
        result.created_order_ids.append(order_id)

    def _failure_pin(self, tenant_id: int, result: SyncResult, now: datetime) -> datetime | None:
        """
        Earliest failed order still worth retrying, or None.

        Failures older than the backfill window are given up on so one bad
        order cannot hold the checkpoint back forever.
        """
        retry_floor = now - timedelta(days=self._settings.backfill_days)
        pin = None
        for failed_at, order_id in result.failed_orders:
            if failed_at is not None and failed_at >= retry_floor:
                pin = failed_at if pin is None else min(pin, failed_at)
                continue
            result.abandoned_order_ids.append(order_id)
            current_app.logger.warning(
                "Abandoning Square order %s for tenant %s: still failing outside the %s-day retry window",
                order_id, tenant_id, self._settings.backfill_days,
            )
        return pin

    def _save_checkpoint(self, tenant_id: int, result: SyncResult, now: datetime) -> None:
        pin = self._failure_pin(tenant_id, result, now)

        def _op():
            state = get_or_create_sync_state(tenant_id)
            previous = as_naive_utc(state.checkpoint_at)

            if pin is not None:
                checkpoint = pin
            elif result.latest_seen_at is not None:
                checkpoint = result.latest_seen_at if previous is None else max(previous, result.latest_seen_at)
            else:
                checkpoint = previous

            state.checkpoint_at = checkpoint
            state.last_run_at = now
            state.last_status = SYNC_STATUS_OK
            state.last_error = None
            state.last_orders_created = result.orders_created
            db.session.commit()
            return checkpoint

        result.checkpoint_at = run_with_retry(_op)
