"""
Module: stock_kernel.models.store_request
Responsibility: ORM persistence for store requests ("please send me stock").

Architecture position: Kernel > Models.

Invariants enforced:
    - status and priority limited to their enum values.
    - version_id optimistic lock counter.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TenantScopedMixin, UUIDString
from stock_kernel.domain.transfer import (
    StoreRequest,
    StoreRequestPriority,
    StoreRequestStatus,
)


class StoreRequestModel(TenantScopedMixin, Base):
    """Persistent store request."""

    __tablename__ = "store_requests"

    __table_args__ = (
        UniqueConstraint("tenant_id", "request_number", name="uq_store_requests_number"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'PARTIALLY_APPROVED', "
            "'REJECTED', 'FULFILLED')",
            name="ck_store_requests_valid_status",
        ),
        CheckConstraint(
            "priority IN ('LOW', 'MEDIUM', 'HIGH', 'URGENT')",
            name="ck_store_requests_valid_priority",
        ),
        CheckConstraint("requested_quantity >= 1", name="ck_store_requests_positive_quantity"),
        Index("ix_store_requests_requesting", "tenant_id", "requesting_store_id", "status"),
        Index("ix_store_requests_supplying", "tenant_id", "supplying_store_id", "status"),
    )

    request_number: Mapped[str] = mapped_column(String(64), nullable=False)
    requesting_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    supplying_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_batches.id"), nullable=False,
    )
    requested_quantity: Mapped[int] = mapped_column(nullable=False)
    approved_quantity: Mapped[int | None] = mapped_column(nullable=True)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=StoreRequestPriority.MEDIUM.value,
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=StoreRequestStatus.PENDING.value,
    )
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    fulfilled_transfer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version_id: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dto(self) -> StoreRequest:
        return StoreRequest(
            request_id=self.id,
            tenant_id=self.tenant_id,
            request_number=self.request_number,
            requesting_store_id=self.requesting_store_id,
            supplying_store_id=self.supplying_store_id,
            batch_id=self.batch_id,
            requested_quantity=self.requested_quantity,
            priority=StoreRequestPriority(self.priority),
            status=StoreRequestStatus(self.status),
            requested_by=self.requested_by_id,
            requested_at=self.requested_at,
            justification=self.justification,
            expected_date=self.expected_date,
            approved_quantity=self.approved_quantity,
            reviewed_by=self.reviewed_by_id,
            reviewed_at=self.reviewed_at,
            review_notes=self.review_notes,
            rejection_reason=self.rejection_reason,
            fulfilled_transfer_id=self.fulfilled_transfer_id,
            fulfilled_at=self.fulfilled_at,
        )
