"""
Module: stock_kernel.models.store_transfer
Responsibility: ORM persistence for completed direct transfers.

Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: db/immutability.py rejects UPDATE and DELETE.
    - transfer_number is unique per tenant.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TenantScopedMixin, UUIDString
from stock_kernel.domain.transfer import StoreTransfer, TransferType


class StoreTransferModel(TenantScopedMixin, Base):
    """Immutable record of one batch movement between two stores."""

    __tablename__ = "store_transfers"

    __table_args__ = (
        UniqueConstraint("tenant_id", "transfer_number", name="uq_store_transfers_number"),
        CheckConstraint("quantity >= 1", name="ck_store_transfers_positive_quantity"),
        CheckConstraint(
            "transfer_type IN ('DISTRIBUTION', 'REQUEST_FULFILLMENT', "
            "'EMERGENCY', 'REBALANCING')",
            name="ck_store_transfers_valid_type",
        ),
        Index("ix_store_transfers_from", "tenant_id", "from_store_id", "completed_at"),
        Index("ix_store_transfers_to", "tenant_id", "to_store_id", "completed_at"),
    )

    transfer_number: Mapped[str] = mapped_column(String(64), nullable=False)
    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_batches.id"), nullable=False,
    )
    from_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    to_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    transfer_type: Mapped[str] = mapped_column(String(30), nullable=False)
    initiated_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    initiated_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    store_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("store_requests.id"), nullable=True,
    )
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self) -> StoreTransfer:
        return StoreTransfer(
            transfer_id=self.id,
            tenant_id=self.tenant_id,
            transfer_number=self.transfer_number,
            batch_id=self.batch_id,
            from_store_id=self.from_store_id,
            to_store_id=self.to_store_id,
            quantity=self.quantity,
            transfer_type=TransferType(self.transfer_type),
            initiated_by=self.initiated_by_id,
            initiated_by_name=self.initiated_by_name,
            completed_at=self.completed_at,
            notes=self.notes,
            store_request_id=self.store_request_id,
        )
