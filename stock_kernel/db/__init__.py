"""Database layer: declarative base, engine/session management, ORM listeners."""

from stock_kernel.db.base import Base, TenantScopedMixin, TrackedBase, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from stock_kernel.db.tenancy import (
    bind_tenant_scope,
    bypass_tenant_scope,
    get_tenant_scope,
    require_tenant_id,
    tenant_scope,
)

__all__ = [
    "Base",
    "TenantScopedMixin",
    "TrackedBase",
    "UUIDString",
    "bind_tenant_scope",
    "bypass_tenant_scope",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_tenant_scope",
    "init_engine_from_url",
    "is_postgres",
    "require_tenant_id",
    "reset_engine",
    "session_scope",
    "tenant_scope",
]
