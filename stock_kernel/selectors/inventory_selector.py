"""
Module: stock_kernel.selectors.inventory_selector
Responsibility: Per-store inventory view and ledger audits over the
    tenant's batches.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - available_in_store is never negative: max(0, allocated - reserved).
    - A batch's owner is the store holding the largest allocation; with no
      allocations at all the MAIN store is reported as owner.
    - Soft-deleted batches are invisible.
"""

from __future__ import annotations

from collections import OrderedDict
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.allocation import (
    StoreAllocation,
    get_store_allocation,
    ledger_violations,
)
from stock_kernel.domain.views import (
    BatchAllocationView,
    BatchLedgerViolation,
    InventoryView,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryBatchModel, InventoryItemModel
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.store_selector import StoreSelector

logger = get_logger("selectors.inventory")

UNKNOWN_STORE_NAME = "Unknown Store"


def _owner_store_id(allocations: dict[str, StoreAllocation]) -> str | None:
    # Ties go to the lowest store id so the answer is stable
    best: tuple[int, str] | None = None
    for store_id, entry in sorted(allocations.items()):
        if best is None or entry.allocated > best[0]:
            best = (entry.allocated, store_id)
    if best is None or best[0] == 0:
        return None
    return best[1]


class InventorySelector(BaseSelector):
    """Read access to batches and their allocation ledgers."""

    def _active_batches(self) -> list[InventoryBatchModel]:
        return list(
            self.session.execute(
                select(InventoryBatchModel)
                .join(InventoryItemModel, InventoryBatchModel.inventory_id == InventoryItemModel.id)
                .where(InventoryBatchModel.deleted_at.is_(None))
                .order_by(InventoryItemModel.name, InventoryBatchModel.batch_number)
            ).scalars().all()
        )

    def store_inventory_view(self, store_id: UUID) -> list[InventoryView]:
        """Every inventory item with the given store's share of each batch.

        Items appear even when the store holds none of their batches, so a
        store screen can show what it could request.
        """
        stores = StoreSelector(self.session)
        store_names = {str(k): name for k, name in stores.store_names().items()}
        main = stores.find_main_store()
        store_key = str(store_id)

        grouped: OrderedDict[UUID, list[InventoryBatchModel]] = OrderedDict()
        for batch in self._active_batches():
            grouped.setdefault(batch.inventory_id, []).append(batch)

        views: list[InventoryView] = []
        for inventory_id, batches in grouped.items():
            batch_views: list[BatchAllocationView] = []
            for batch in batches:
                allocations = batch.allocations
                entry = get_store_allocation(allocations, store_key)
                allocated = entry.allocated if entry is not None else 0
                reserved = entry.reserved if entry is not None else 0

                owner_key = _owner_store_id(allocations)
                if owner_key is None and main is not None:
                    owner_key = str(main.store_id)
                owner_name = (
                    store_names.get(owner_key, UNKNOWN_STORE_NAME)
                    if owner_key is not None
                    else UNKNOWN_STORE_NAME
                )

                batch_views.append(
                    BatchAllocationView(
                        batch_id=batch.id,
                        batch_number=batch.batch_number,
                        total_quantity=batch.number_of_stock,
                        allocated_to_store=allocated,
                        reserved_in_store=reserved,
                        available_in_store=max(0, allocated - reserved),
                        unit_price=batch.unit_price,
                        is_owned_by_store=owner_key == store_key,
                        owner_store_name=owner_name,
                    )
                )
            views.append(
                InventoryView(
                    inventory_id=inventory_id,
                    inventory_name=batches[0].inventory.name,
                    batches=tuple(batch_views),
                    total_allocated=sum(b.allocated_to_store for b in batch_views),
                    total_available=sum(b.available_in_store for b in batch_views),
                )
            )
        return views

    def read_all_allocations(self) -> dict[UUID, dict[str, StoreAllocation]]:
        """Decoded ledger of every active batch, keyed by batch id."""
        return {batch.id: batch.allocations for batch in self._active_batches()}

    def find_ledger_violations(self) -> list[BatchLedgerViolation]:
        """Batches whose ledger or aggregate columns disagree with the invariants."""
        found: list[BatchLedgerViolation] = []
        for batch in self._active_batches():
            allocations = batch.allocations
            problems = list(ledger_violations(allocations, batch.number_of_stock))
            allocated = sum(e.allocated for e in allocations.values())
            reserved = sum(e.reserved for e in allocations.values())
            if batch.remaining_quantity != allocated:
                problems.append(
                    f"remaining_quantity {batch.remaining_quantity} != "
                    f"allocated total {allocated}"
                )
            if batch.reserved_quantity != reserved:
                problems.append(
                    f"reserved_quantity {batch.reserved_quantity} != "
                    f"reserved total {reserved}"
                )
            if problems:
                found.append(
                    BatchLedgerViolation(
                        batch_id=batch.id,
                        batch_number=batch.batch_number,
                        problems=tuple(problems),
                    )
                )
        if found:
            logger.warning(
                "ledger_violations_found",
                extra={"batch_count": len(found)},
            )
        return found
