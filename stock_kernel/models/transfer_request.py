"""
Module: stock_kernel.models.transfer_request
Responsibility: ORM persistence for transfer requests attached to a batch.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - status and request_type limited to their enum values (check constraints).
    - At most one open request (PENDING, APPROVED, PARTIALLY_APPROVED) per
      (tenant, source store, target store, batch): partial unique index
      backing the service-level duplicate guard.
    - Rows are never deleted; terminal rows are the audit trail.
    - version_id is an optimistic lock counter on the request row.

Failure modes:
    - IntegrityError on a raced duplicate open request.
    - StaleDataError when a concurrent transition already updated the row.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TenantScopedMixin, UUIDString
from stock_kernel.domain.transfer import (
    TransferRequest,
    TransferRequestStatus,
    TransferRequestType,
)

if TYPE_CHECKING:
    from stock_kernel.models.inventory import InventoryBatchModel

_OPEN_STATUS_SQL = "status IN ('PENDING', 'APPROVED', 'PARTIALLY_APPROVED')"


class TransferRequestModel(TenantScopedMixin, Base):
    """Persistent transfer request.  ``id`` is the request id."""

    __tablename__ = "transfer_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'PARTIALLY_APPROVED', "
            "'REJECTED', 'COMPLETED', 'CANCELLED')",
            name="ck_transfer_requests_valid_status",
        ),
        CheckConstraint(
            "request_type IN ('ALLOCATION', 'TRANSFER')",
            name="ck_transfer_requests_valid_type",
        ),
        CheckConstraint(
            "requested_quantity >= 1",
            name="ck_transfer_requests_positive_quantity",
        ),
        Index(
            "uq_transfer_requests_open_triple",
            "tenant_id", "source_store_id", "target_store_id", "batch_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_SQL),
            sqlite_where=text(_OPEN_STATUS_SQL),
        ),
        Index("ix_transfer_requests_source_status", "tenant_id", "source_store_id", "status"),
        Index("ix_transfer_requests_target_status", "tenant_id", "target_store_id", "status"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_batches.id"), nullable=False, index=True,
    )
    request_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransferRequestType.TRANSFER.value,
    )
    source_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    target_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    requested_quantity: Mapped[int] = mapped_column(nullable=False)
    approved_quantity: Mapped[int | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=TransferRequestStatus.PENDING.value,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    confirmed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    confirmed_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(nullable=False)

    batch: Mapped[InventoryBatchModel] = relationship(
        "InventoryBatchModel", back_populates="transfer_requests",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def request_status(self) -> TransferRequestStatus:
        return TransferRequestStatus(self.status)

    def to_dto(self) -> TransferRequest:
        return TransferRequest(
            request_id=self.id,
            tenant_id=self.tenant_id,
            batch_id=self.batch_id,
            request_type=TransferRequestType(self.request_type),
            source_store_id=self.source_store_id,
            target_store_id=self.target_store_id,
            requested_quantity=self.requested_quantity,
            status=TransferRequestStatus(self.status),
            reason=self.reason,
            requested_by=self.requested_by_id,
            requested_by_name=self.requested_by_name,
            requested_at=self.requested_at,
            approved_quantity=self.approved_quantity,
            approved_by=self.approved_by_id,
            approved_by_name=self.approved_by_name,
            approved_at=self.approved_at,
            rejection_reason=self.rejection_reason,
            confirmed_by=self.confirmed_by_id,
            confirmed_by_name=self.confirmed_by_name,
            confirmed_at=self.confirmed_at,
            cancelled_by=self.cancelled_by_id,
            cancelled_at=self.cancelled_at,
        )

    def __repr__(self) -> str:
        return (
            f"<TransferRequestModel {self.id} {self.source_store_id}->"
            f"{self.target_store_id} {self.status}>"
        )
