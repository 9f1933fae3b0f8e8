"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for inventory items and their batches,
    including the embedded per-store allocation ledger.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - remaining_quantity == sum(allocated) and reserved_quantity ==
      sum(reserved) over store_allocations.  replace_allocations() is the
      only writer of the three columns and recomputes both aggregates.
    - version_id is an optimistic lock counter: every UPDATE of a batch
      checks and bumps it, so two writers that both read the same version
      cannot both succeed.

Failure modes:
    - StaleDataError at flush when another transaction updated the batch
      first (services translate it to OptimisticLockError).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import JSONDocument, TenantScopedMixin, TrackedBase, UUIDString
from stock_kernel.domain.allocation import (
    AllocationMap,
    StoreAllocation,
    allocations_from_document,
    allocations_to_document,
    get_total_allocated,
    get_total_reserved,
)

if TYPE_CHECKING:
    from stock_kernel.models.transfer_request import TransferRequestModel


class InventoryItemModel(TenantScopedMixin, TrackedBase):
    """Catalog entry a batch belongs to.  Catalog management lives elsewhere."""

    __tablename__ = "inventory_items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)


class InventoryBatchModel(TenantScopedMixin, TrackedBase):
    """One receipt of stock, with its store allocation ledger."""

    __tablename__ = "inventory_batches"

    __table_args__ = (
        CheckConstraint("number_of_stock >= 0", name="ck_batches_stock_non_negative"),
        CheckConstraint("remaining_quantity >= 0", name="ck_batches_remaining_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_batches_reserved_non_negative"),
        CheckConstraint(
            "remaining_quantity <= number_of_stock",
            name="ck_batches_remaining_within_stock",
        ),
        Index("ix_batches_tenant_inventory", "tenant_id", "inventory_id"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False,
    )
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    number_of_stock: Mapped[int] = mapped_column(nullable=False)
    remaining_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    store_allocations: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, nullable=False, default=dict,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    version_id: Mapped[int] = mapped_column(nullable=False)

    inventory: Mapped[InventoryItemModel] = relationship(
        InventoryItemModel, lazy="joined",
    )
    transfer_requests: Mapped[list[TransferRequestModel]] = relationship(
        "TransferRequestModel",
        back_populates="batch",
        order_by="TransferRequestModel.requested_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def allocations(self) -> dict[str, StoreAllocation]:
        """Decoded ledger.  A fresh dict on every access."""
        return allocations_from_document(self.store_allocations)

    def replace_allocations(self, allocations: AllocationMap) -> None:
        """Write a new ledger and recompute the aggregates from it."""
        self.store_allocations = allocations_to_document(allocations)
        self.remaining_quantity = get_total_allocated(allocations)
        self.reserved_quantity = get_total_reserved(allocations)

    def __repr__(self) -> str:
        return (
            f"<InventoryBatchModel {self.batch_number} "
            f"remaining={self.remaining_quantity}>"
        )
