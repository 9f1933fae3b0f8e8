"""
Module: stock_kernel.db.tenancy
Responsibility: Tenant scoping interceptor.  Every ORM statement and every
    flush that touches a tenant-scoped model is filtered or stamped with the
    tenant bound to the session, so no query can omit ``tenant_id``.
Architecture position: Kernel > DB.  May import from db/base.py,
    domain/scope.py, exceptions.py and logging_config.py only.

How it works:

    session.execute(select(StoreModel))
         |
         v
    [do_orm_execute] --> scope bound?  no  --> TenantContextRequiredError
         |                      yes
         v
    statement.options(with_loader_criteria(TenantScopedMixin,
                                           tenant_id == scope.tenant_id))
         |
         v
    SQL sent with "WHERE stores.tenant_id = :tenant_id" (also applied to
    lazy/selectin relationship loads)

    session.flush()
         |
         v
    [before_flush] --> new rows: tenant_id stamped from scope
                   --> new/dirty/deleted rows of another tenant:
                       CrossTenantAccessError

Invariants enforced:
    - A tenant-scoped read, write or flush with no bound scope fails before
      any SQL for it is emitted.
    - Only tables on TENANT_EXEMPT_TABLES may lack a tenant_id column
      (checked by verify_tenant_coverage at registration time).
    - The scope lives in ``session.info``; there is no process-wide tenant.

Failure modes:
    - TenantContextRequiredError: no scope bound and no bypass active.
    - CrossTenantAccessError: a write names a different tenant than the scope.
    - RuntimeError: a mapped table is neither tenant-scoped nor exempt.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy import MetaData, event, inspect
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from stock_kernel.db.base import TenantScopedMixin
from stock_kernel.domain.scope import TenantScope
from stock_kernel.exceptions import CrossTenantAccessError, TenantContextRequiredError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.tenancy")

TENANT_EXEMPT_TABLES: frozenset[str] = frozenset({
    "tenants",
    "users",
    "roles",
})

_SCOPE_KEY = "stock_kernel.tenant_scope"
_BYPASS_KEY = "stock_kernel.tenant_scope_bypass"


# =============================================================================
# Scope binding
# =============================================================================


def bind_tenant_scope(session: Session, scope: TenantScope) -> None:
    """Bind ``scope`` to ``session`` for the rest of its life."""
    session.info[_SCOPE_KEY] = scope


def clear_tenant_scope(session: Session) -> None:
    session.info.pop(_SCOPE_KEY, None)


def get_tenant_scope(session: Session) -> TenantScope | None:
    return session.info.get(_SCOPE_KEY)


def require_tenant_id(session: Session, operation: str = "this operation") -> UUID:
    """Return the bound tenant id or fail fast."""
    scope = get_tenant_scope(session)
    if scope is None:
        logger.warning("tenant_scope_missing", extra={"operation": operation})
        raise TenantContextRequiredError(operation)
    return scope.tenant_id


@contextmanager
def tenant_scope(session: Session, scope: TenantScope) -> Iterator[TenantScope]:
    """Bind ``scope`` for the duration of the block, restoring the previous one."""
    previous = get_tenant_scope(session)
    bind_tenant_scope(session, scope)
    try:
        yield scope
    finally:
        if previous is None:
            clear_tenant_scope(session)
        else:
            bind_tenant_scope(session, previous)


def is_scope_bypassed(session: Session) -> bool:
    return session.info.get(_BYPASS_KEY, 0) > 0


@contextmanager
def bypass_tenant_scope(session: Session, reason: str = "system") -> Iterator[Session]:
    """
    Suspend tenant filtering on ``session`` for trusted system operations.

    Used to resolve a tenant before any scope exists.  New tenant-scoped rows
    created inside the block must carry an explicit tenant_id.
    """
    session.info[_BYPASS_KEY] = session.info.get(_BYPASS_KEY, 0) + 1
    logger.debug("tenant_scope_bypassed", extra={"reason": reason})
    try:
        yield session
    finally:
        session.info[_BYPASS_KEY] -= 1


# =============================================================================
# Listeners
# =============================================================================


def _is_tenant_scoped(cls: object) -> bool:
    return isinstance(cls, type) and issubclass(cls, TenantScopedMixin)


def _scope_orm_execute(orm_execute_state: ORMExecuteState) -> None:
    if not (
        orm_execute_state.is_select
        or orm_execute_state.is_update
        or orm_execute_state.is_delete
    ):
        return
    # Criteria added to the parent statement propagate to these loads
    if orm_execute_state.is_column_load or orm_execute_state.is_relationship_load:
        return

    scoped = sorted(
        mapper.class_.__name__
        for mapper in orm_execute_state.all_mappers
        if _is_tenant_scoped(mapper.class_)
    )
    if not scoped:
        return

    session = orm_execute_state.session
    if is_scope_bypassed(session):
        return

    scope = get_tenant_scope(session)
    if scope is None:
        logger.warning("tenant_scope_missing", extra={"entities": scoped})
        raise TenantContextRequiredError(f"query on {', '.join(scoped)}")

    tenant_id = scope.tenant_id
    orm_execute_state.statement = orm_execute_state.statement.options(
        with_loader_criteria(
            TenantScopedMixin,
            lambda cls: cls.tenant_id == tenant_id,
            include_aliases=True,
        )
    )


def _scope_flush(session: Session, flush_context, instances) -> None:
    bypassed = is_scope_bypassed(session)
    scope = get_tenant_scope(session)

    for obj in session.new:
        if not _is_tenant_scoped(type(obj)):
            continue
        if scope is None:
            if bypassed and obj.tenant_id is not None:
                continue
            raise TenantContextRequiredError(f"insert of {type(obj).__name__}")
        if obj.tenant_id is None:
            obj.tenant_id = scope.tenant_id
        elif obj.tenant_id != scope.tenant_id and not bypassed:
            raise CrossTenantAccessError(
                type(obj).__name__, str(obj.tenant_id), str(scope.tenant_id),
            )

    if bypassed:
        return

    for obj in [*session.dirty, *session.deleted]:
        if not _is_tenant_scoped(type(obj)):
            continue
        if scope is None:
            raise TenantContextRequiredError(f"write to {type(obj).__name__}")
        history = inspect(obj).attrs.tenant_id.history
        original = history.deleted[0] if history.deleted else obj.tenant_id
        if original != scope.tenant_id or obj.tenant_id != scope.tenant_id:
            raise CrossTenantAccessError(
                type(obj).__name__, str(original), str(scope.tenant_id),
            )


def verify_tenant_coverage(metadata: MetaData) -> None:
    """Fail if a table is neither tenant-scoped nor on the exempt allow-list."""
    unscoped = sorted(
        table.name
        for table in metadata.tables.values()
        if "tenant_id" not in table.c and table.name not in TENANT_EXEMPT_TABLES
    )
    if unscoped:
        raise RuntimeError(
            "Tables without tenant_id must be listed in TENANT_EXEMPT_TABLES: "
            + ", ".join(unscoped)
        )


def register_tenant_scoping_listeners() -> None:
    """
    Install the scoping interceptor on every Session (idempotent).

    Call after all models are imported, before any database operation.
    """
    from stock_kernel.db.base import Base
    import stock_kernel.models  # noqa: F401

    verify_tenant_coverage(Base.metadata)

    if not event.contains(Session, "do_orm_execute", _scope_orm_execute):
        event.listen(Session, "do_orm_execute", _scope_orm_execute)
    if not event.contains(Session, "before_flush", _scope_flush):
        event.listen(Session, "before_flush", _scope_flush)


def unregister_tenant_scoping_listeners() -> None:
    """Remove the interceptor.  Tests only."""
    if event.contains(Session, "do_orm_execute", _scope_orm_execute):
        event.remove(Session, "do_orm_execute", _scope_orm_execute)
    if event.contains(Session, "before_flush", _scope_flush):
        event.remove(Session, "before_flush", _scope_flush)
