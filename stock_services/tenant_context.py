"""
stock_services.tenant_context -- Per-request tenant-scoped sessions.

Responsibility:
    Opens the session an inbound request works in: resolves the tenant
    (before any scope exists, under an explicit bypass), refuses inactive
    tenants, binds the TenantScope to the session and the log context, and
    owns commit/rollback.

Architecture position:
    Services.  Consumed by the HTTP layer (out of scope) and by jobs.

Failure modes:
    - TenantNotFoundError for an unknown tenant.
    - TenantInactiveError (PRECONDITION_FAILED) for INACTIVE or SUSPENDED.
    - StoreNotFoundError when a store is named but not active in the tenant.
    - Any exception inside the block rolls the transaction back and
      propagates.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.db.tenancy import bind_tenant_scope, bypass_tenant_scope
from stock_kernel.domain.scope import TenantScope, TenantStatus
from stock_kernel.exceptions import TenantInactiveError, TenantNotFoundError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.tenant import TenantModel
from stock_kernel.selectors.store_selector import StoreSelector

logger = get_logger("services.tenant_context")


def resolve_active_tenant(session: Session, tenant_id: UUID) -> TenantModel:
    """Load a tenant outside any scope and require it to be ACTIVE."""
    with bypass_tenant_scope(session, reason="resolve tenant"):
        tenant = session.get(TenantModel, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(str(tenant_id))
    if tenant.tenant_status is not TenantStatus.ACTIVE:
        logger.warning(
            "tenant_inactive",
            extra={"tenant_id": str(tenant_id), "status": tenant.status},
        )
        raise TenantInactiveError(str(tenant_id), tenant.status)
    return tenant


@contextmanager
def tenant_session(
    session_factory: Callable[[], Session],
    tenant_id: UUID,
    store_id: UUID | None = None,
    *,
    actor_id: UUID | None = None,
    correlation_id: str | None = None,
) -> Iterator[Session]:
    """Yield a session bound to ``tenant_id`` (and optionally a store).

    Commits on normal exit; rolls back and re-raises on any exception.
    """
    session = session_factory()
    try:
        resolve_active_tenant(session, tenant_id)
        bind_tenant_scope(session, TenantScope(tenant_id=tenant_id, store_id=store_id))
        with LogContext.bind(
            tenant_id=tenant_id,
            store_id=store_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ):
            if store_id is not None:
                StoreSelector(session).get_store(store_id)
            yield session
            session.commit()
            logger.debug("tenant_transaction_committed")
    except Exception:
        session.rollback()
        logger.warning(
            "tenant_transaction_rolled_back",
            extra={"tenant_id": str(tenant_id)},
            exc_info=True,
        )
        raise
    finally:
        session.close()
