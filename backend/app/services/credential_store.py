"""
Credential Store: the only place POS tokens are read or written.

Callers get a TokenSet value back; nobody else touches the token columns of
TenantIntegration or caches tokens elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import Tenant, TenantIntegration
from app.time_utils import as_naive_utc, utcnow
from .concurrency import lock_for_update, run_with_retry
from .integration_errors import TenantNotFound


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def expires_within(self, now: datetime, seconds: int) -> bool:
        if self.expires_at is None:
            return False
        return (self.expires_at - now).total_seconds() <= seconds


class CredentialStore:
    def get_integration(self, tenant_id: int) -> TenantIntegration:
        """Return the tenant's integration row, creating it on first use."""
        integration = db.session.query(TenantIntegration).filter_by(tenant_id=tenant_id).first()
        if integration:
            return integration

        tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
        if not tenant:
            raise TenantNotFound(f"Tenant {tenant_id} not found")

        integration = TenantIntegration(tenant_id=tenant_id)
        db.session.add(integration)
        db.session.commit()
        return integration

    def get_tokens(self, tenant_id: int) -> TokenSet | None:
        integration = self.get_integration(tenant_id)
        if not integration.access_token:
            return None
        return TokenSet(
            access_token=integration.access_token,
            refresh_token=integration.refresh_token,
            expires_at=as_naive_utc(integration.token_expires_at),
        )

    def set_tokens(self, tenant_id: int, tokens: TokenSet) -> TenantIntegration:
        self.get_integration(tenant_id)

        def _op():
            integration = lock_for_update(
                db.session.query(TenantIntegration).filter_by(tenant_id=tenant_id)
            ).first()
            integration.access_token = tokens.access_token
            integration.refresh_token = tokens.refresh_token
            integration.token_expires_at = tokens.expires_at
            db.session.commit()
            return integration

        return run_with_retry(_op)

    def clear_tokens(self, tenant_id: int) -> TenantIntegration:
        self.get_integration(tenant_id)

        def _op():
            integration = lock_for_update(
                db.session.query(TenantIntegration).filter_by(tenant_id=tenant_id)
            ).first()
            integration.access_token = None
            integration.refresh_token = None
            integration.token_expires_at = None
            db.session.commit()
            return integration

        return run_with_retry(_op)

    def get_location_id(self, tenant_id: int) -> str | None:
        return self.get_integration(tenant_id).location_id

    def bind_location_if_unbound(self, tenant_id: int, location_id: str) -> bool:
        """
        Write location_id only while it is still NULL.

        Returns True when this call performed the write. A single conditional
        UPDATE, so two concurrent binders cannot both succeed.
        """
        self.get_integration(tenant_id)

        def _op():
            result = db.session.execute(
                update(TenantIntegration)
                .where(
                    TenantIntegration.tenant_id == tenant_id,
                    TenantIntegration.location_id.is_(None),
                )
                .values(location_id=location_id, location_bound_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount == 1

        return run_with_retry(_op)
