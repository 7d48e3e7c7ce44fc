"""
Sync Orchestrator: the periodic batch driver.

For every tenant: take the daily inventory snapshot (at most once per
calendar day), then run the Order Sync Engine under a per-tenant lease.

TENANT ISOLATION: each tenant's work is wrapped; a failure is logged with
the tenant identity, recorded on its SyncState and reported in the summary,
and the loop moves on.

SCHEDULING:
- Sequential by default; SYNC_MAX_WORKERS > 1 runs tenants on a bounded
  thread pool, each worker inside its own app context (own DB session).
- The lease (SyncState.lease_token) keeps two runs, in this process or in
  another scheduler instance, from syncing the same tenant concurrently.
- Overall deadline: tenants not started before it are reported as
  "deadline". Started tenants are never interrupted mid-write; each
  provider call is bounded by its own HTTP timeout instead.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import InventorySnapshotRun, Tenant
from ..models.sync import SYNC_STATUS_FAILED
from app.time_utils import local_today, to_utc_z, utcnow
from .concurrency import claim_tenant_lease, get_or_create_sync_state, release_tenant_lease
from .integration_errors import IntegrationError
from .integration_settings import IntegrationSettings
from .order_sync_service import OrderSyncEngine
from .snapshot_service import snapshot_all

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"
STATUS_BUSY = "busy"
STATUS_DEADLINE = "deadline"


@dataclass
class TenantRunResult:
    tenant_id: int
    slug: str
    status: str = STATUS_OK
    snapshots: int | None = None
    orders_created: int = 0
    orders_skipped: int = 0
    orders_failed: int = 0
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "slug": self.slug,
            "status": self.status,
            "snapshots": self.snapshots,
            "orders_created": self.orders_created,
            "orders_skipped": self.orders_skipped,
            "orders_failed": self.orders_failed,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class BatchSummary:
    started_at: datetime
    finished_at: datetime | None = None
    tenants: list[TenantRunResult] = field(default_factory=list)

    def count(self, *statuses: str) -> int:
        return sum(1 for result in self.tenants if result.status in statuses)

    @property
    def succeeded(self) -> int:
        return self.count(STATUS_OK)

    @property
    def failed(self) -> int:
        return self.count(STATUS_FAILED)

    @property
    def skipped(self) -> int:
        return self.count(STATUS_SKIPPED, STATUS_BUSY, STATUS_DEADLINE)

    def to_dict(self) -> dict:
        return {
            "started_at": to_utc_z(self.started_at),
            "finished_at": to_utc_z(self.finished_at),
            "total": len(self.tenants),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "tenants": [result.to_dict() for result in self.tenants],
        }


class SyncOrchestrator:
    def __init__(self, settings: IntegrationSettings, engine: OrderSyncEngine):
        self._settings = settings
        self._engine = engine

    def run(
        self,
        tenant_ids: list[int] | None = None,
        *,
        snapshot: bool = True,
        sync_orders: bool = True,
        now: datetime | None = None,
        snapshot_date: date | None = None,
    ) -> BatchSummary:
        summary = BatchSummary(started_at=utcnow())
        deadline = time.monotonic() + self._settings.deadline_seconds

        query = db.session.query(Tenant.id, Tenant.slug).order_by(Tenant.id.asc())
        if tenant_ids is not None:
            query = query.filter(Tenant.id.in_(tenant_ids))
        tenants = [(row.id, row.slug) for row in query.all()]

        options = dict(
            deadline=deadline,
            snapshot=snapshot,
            sync_orders=sync_orders,
            now=now,
            snapshot_date=snapshot_date,
        )

        if self._settings.max_workers <= 1 or len(tenants) <= 1:
            for tenant_id, slug in tenants:
                summary.tenants.append(self._run_tenant(tenant_id, slug, **options))
        else:
            app = current_app._get_current_object()
            with ThreadPoolExecutor(max_workers=self._settings.max_workers) as pool:
                futures = [
                    pool.submit(self._run_tenant_in_context, app, tenant_id, slug, options)
                    for tenant_id, slug in tenants
                ]
                summary.tenants.extend(future.result() for future in futures)

        summary.finished_at = utcnow()
        current_app.logger.info(
            "Sync run finished: %s tenant(s), %s ok, %s failed, %s skipped",
            len(summary.tenants), summary.succeeded, summary.failed, summary.skipped,
        )
        return summary

    def _run_tenant_in_context(self, app, tenant_id: int, slug: str, options: dict) -> TenantRunResult:
        with app.app_context():
            return self._run_tenant(tenant_id, slug, **options)

    def _run_tenant(
        self,
        tenant_id: int,
        slug: str,
        *,
        deadline: float,
        snapshot: bool,
        sync_orders: bool,
        now: datetime | None,
        snapshot_date: date | None,
    ) -> TenantRunResult:
        result = TenantRunResult(tenant_id=tenant_id, slug=slug)
        if time.monotonic() >= deadline:
            result.status = STATUS_DEADLINE
            result.reason = "run deadline reached before tenant started"
            return result

        tenant_now = now or utcnow()
        try:
            if snapshot:
                result.snapshots = self._snapshot_once(tenant_id, snapshot_date or local_today())
            if sync_orders:
                self._sync_with_lease(tenant_id, tenant_now, result)
            elif not snapshot:
                result.status = STATUS_SKIPPED
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception("Sync failed for tenant %s (%s)", tenant_id, slug)
            result.status = STATUS_FAILED
            result.error = exc.message if isinstance(exc, IntegrationError) else str(exc) or exc.__class__.__name__
            self._record_failure(tenant_id, result.error, tenant_now)
        return result

    def _snapshot_once(self, tenant_id: int, day: date) -> int | None:
        """Claim (tenant, day) and snapshot; None when the day was already taken."""
        claim = InventorySnapshotRun(tenant_id=tenant_id, snapshot_date=day)
        try:
            db.session.add(claim)
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            return None

        claim.item_count = snapshot_all(tenant_id, snapshot_date=day, commit=False)
        db.session.commit()
        return claim.item_count

    def _sync_with_lease(self, tenant_id: int, now: datetime, result: TenantRunResult) -> None:
        token = claim_tenant_lease(tenant_id, now=now, lease_seconds=self._settings.lease_seconds)
        if token is None:
            result.status = STATUS_BUSY
            result.reason = "another sync run holds this tenant"
            return

        try:
            sync_result = self._engine.sync(tenant_id, now=now)
        finally:
            # A failed sync leaves the session dirty; release must still land
            db.session.rollback()
            release_tenant_lease(tenant_id, token)

        result.status = sync_result.status
        result.reason = sync_result.reason
        result.orders_created = sync_result.orders_created
        result.orders_skipped = sync_result.orders_skipped
        result.orders_failed = sync_result.orders_failed

    def _record_failure(self, tenant_id: int, message: str, now: datetime) -> None:
        try:
            state = get_or_create_sync_state(tenant_id)
            state.last_run_at = now
            state.last_status = SYNC_STATUS_FAILED
            state.last_error = message[:2000]
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Could not record sync failure for tenant %s", tenant_id)
