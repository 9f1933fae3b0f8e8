"""Tenant scope value object carried by every tenant-scoped session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


@dataclass(frozen=True)
class TenantScope:
    """Active tenant (and optionally store) for one operation.

    Bound to a session with ``stock_kernel.db.tenancy.bind_tenant_scope``;
    never stored in process-wide state.
    """

    tenant_id: UUID
    store_id: UUID | None = None

    def with_store(self, store_id: UUID | None) -> TenantScope:
        return TenantScope(tenant_id=self.tenant_id, store_id=store_id)


class TenantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
