"""
Module: stock_kernel.models.tenant
Responsibility: ORM persistence for tenants, the isolation boundary.

Architecture position: Kernel > Models.  Exempt from tenant scoping
    (listed in db/tenancy.TENANT_EXEMPT_TABLES): a tenant row must be
    readable before any scope exists.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.domain.scope import TenantStatus


class TenantModel(Base):
    """A customer organisation.  Soft lifecycle via ``status``; never merged."""

    __tablename__ = "tenants"

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'INACTIVE', 'SUSPENDED')",
            name="ck_tenants_valid_status",
        ),
    )

    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TenantStatus.ACTIVE.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )

    @property
    def tenant_status(self) -> TenantStatus:
        return TenantStatus(self.status)

    def __repr__(self) -> str:
        return f"<TenantModel {self.company_name} ({self.status})>"
