# Overview: Row locking, retry and per-tenant run leases shared by the integration services.

from __future__ import annotations

import time
import uuid
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import SyncState


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def get_or_create_sync_state(tenant_id: int) -> SyncState:
    state = db.session.query(SyncState).filter_by(tenant_id=tenant_id).first()
    if state:
        return state
    try:
        state = SyncState(tenant_id=tenant_id)
        db.session.add(state)
        db.session.commit()
        return state
    except IntegrityError:
        # Another worker created it first
        db.session.rollback()
        return db.session.query(SyncState).filter_by(tenant_id=tenant_id).one()


def claim_tenant_lease(tenant_id: int, *, now: datetime, lease_seconds: int) -> str | None:
    """
    Claim the tenant's sync lease.

    Returns the lease token, or None while another run holds an unexpired
    lease. Implemented as one conditional UPDATE so it also holds across
    several scheduler instances sharing the database.
    """
    get_or_create_sync_state(tenant_id)
    token = uuid.uuid4().hex

    def _op():
        result = db.session.execute(
            update(SyncState)
            .where(
                SyncState.tenant_id == tenant_id,
                or_(SyncState.lease_expires_at.is_(None), SyncState.lease_expires_at <= now),
            )
            .values(lease_token=token, lease_expires_at=now + timedelta(seconds=lease_seconds))
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    return token if run_with_retry(_op) else None


def release_tenant_lease(tenant_id: int, token: str) -> None:
    def _op():
        db.session.execute(
            update(SyncState)
            .where(SyncState.tenant_id == tenant_id, SyncState.lease_token == token)
            .values(lease_token=None, lease_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

    run_with_retry(_op)
