"""
stock_kernel.services.allocation_service -- Ledger maintenance outside the
transfer workflows.

Responsibility:
    Receiving new batches into a store, seeding ledgers of legacy batches
    (migration), store reservations, and removal of emptied ledger entries.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.

Invariants enforced:
    - Every ledger write goes through BaseService._write_ledger, so
      remaining_quantity and reserved_quantity always equal the ledger sums.
    - set_initial_allocation is idempotent: a batch whose ledger already has
      entries is never rewritten.
    - set_initial_allocations seeds each batch in its own savepoint, so one
      bad legacy batch is reported without undoing the others.
    - An entry is only removed when it holds nothing (zero allocated, zero
      reserved).

Failure modes:
    - InventoryItemNotFoundError / InventoryBatchNotFoundError /
      StoreNotFoundError for unknown ids.
    - InvalidQuantityError for non-positive quantities.
    - InsufficientAllocationError when a reservation exceeds the allocation
      or a release exceeds the reservation.
    - StoreInUseError when removing a non-empty entry.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.allocation import (
    get_store_allocation,
    remove_store_allocation,
    update_store_allocation,
    with_reservation,
)
from stock_kernel.domain.views import FailedInitialAllocation, InitialAllocationSummary
from stock_kernel.exceptions import (
    InsufficientAllocationError,
    InventoryItemNotFoundError,
    InvalidQuantityError,
    StockKernelError,
    StoreInUseError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryBatchModel, InventoryItemModel
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService

logger = get_logger("services.allocation")

MIGRATION_ACTOR_ID = "SYSTEM_MIGRATION"


def _require_positive(field: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidQuantityError(field, value)


class AllocationService(BaseService):
    """Batch receipt, migration seeding and reservations."""

    def receive_batch(
        self,
        inventory_id: UUID,
        batch_number: str,
        number_of_stock: int,
        unit_price: Decimal,
        actor_id: UUID | str,
        store_id: UUID | None = None,
    ) -> InventoryBatchModel:
        """Create a batch with its whole quantity allocated to one store.

        The receiving store defaults to the tenant's MAIN store.
        """
        _require_positive("number_of_stock", number_of_stock)
        if self.session.get(InventoryItemModel, inventory_id) is None:
            raise InventoryItemNotFoundError(str(inventory_id))

        if store_id is None:
            store_id = StoreSelector(self.session).get_main_store().store_id
        store = self._lock_store(store_id, shared=True).to_node()

        batch = InventoryBatchModel(
            inventory_id=inventory_id,
            batch_number=batch_number,
            unit_price=unit_price,
            number_of_stock=number_of_stock,
            created_by_id=str(actor_id),
        )
        self._write_ledger(
            batch,
            update_store_allocation(
                {}, store.store_id, number_of_stock, 0, actor_id, clock=self.clock,
            ),
            actor_id,
        )
        self.session.add(batch)
        self._flush("InventoryBatch", batch_number)

        logger.info(
            "batch_received",
            extra={
                "batch_id": str(batch.id),
                "batch_number": batch_number,
                "store_id": str(store.store_id),
                "quantity": number_of_stock,
            },
        )
        return batch

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def set_initial_allocation(
        self,
        batch_id: UUID,
        actor_id: UUID | str = MIGRATION_ACTOR_ID,
    ) -> bool:
        """Seed an empty ledger from the batch aggregates.

        The batch's remaining and reserved quantities are assigned to the
        MAIN store.  Returns False, writing nothing, when the ledger already
        has entries.
        """
        batch = self._lock_batch(batch_id)
        return self._seed_ledger(batch, StoreSelector(self.session), actor_id)

    def set_initial_allocations(
        self,
        actor_id: UUID | str = MIGRATION_ACTOR_ID,
        chunk_size: int = 100,
    ) -> InitialAllocationSummary:
        """Seed every batch in scope, ``chunk_size`` batches per read.

        Each batch is seeded inside a savepoint.  A batch whose aggregates
        cannot form a valid ledger is rolled back alone, logged and listed
        in the summary; the run carries on with the next batch.
        """
        _require_positive("chunk_size", chunk_size)
        stores = StoreSelector(self.session)

        seeded = skipped = offset = 0
        failed: list[FailedInitialAllocation] = []
        last_id: UUID | None = None
        while True:
            query = (
                select(InventoryBatchModel.id, InventoryBatchModel.batch_number)
                .where(InventoryBatchModel.deleted_at.is_(None))
                .order_by(InventoryBatchModel.id)
                .limit(chunk_size)
            )
            if last_id is not None:
                query = query.where(InventoryBatchModel.id > last_id)
            chunk = self.session.execute(query).all()
            if not chunk:
                break

            for batch_id, batch_number in chunk:
                try:
                    with self.session.begin_nested():
                        written = self._seed_ledger(self._lock_batch(batch_id), stores, actor_id)
                except StockKernelError as exc:
                    logger.error(
                        "initial_allocation_failed",
                        extra={
                            "batch_id": str(batch_id),
                            "batch_number": batch_number,
                            "error_code": exc.code,
                            "error": str(exc),
                        },
                    )
                    failed.append(
                        FailedInitialAllocation(batch_id, batch_number, exc.code, str(exc))
                    )
                    continue
                if written:
                    seeded += 1
                else:
                    skipped += 1

            logger.info(
                "initial_allocation_chunk_processed",
                extra={
                    "offset": offset,
                    "size": len(chunk),
                    "seeded_total": seeded,
                    "failed_total": len(failed),
                },
            )
            offset += len(chunk)
            last_id = chunk[-1][0]

        return InitialAllocationSummary(seeded=seeded, skipped=skipped, failed=tuple(failed))

    def _seed_ledger(
        self,
        batch: InventoryBatchModel,
        stores: StoreSelector,
        actor_id: UUID | str,
    ) -> bool:
        if batch.allocations:
            return False
        main = stores.get_main_store()
        self._write_ledger(
            batch,
            update_store_allocation(
                {},
                main.store_id,
                batch.remaining_quantity,
                batch.reserved_quantity,
                actor_id,
                clock=self.clock,
            ),
            actor_id,
        )
        self._flush("InventoryBatch", batch.id)
        logger.info(
            "initial_allocation_set",
            extra={
                "batch_id": str(batch.id),
                "store_id": str(main.store_id),
                "allocated": batch.remaining_quantity,
                "reserved": batch.reserved_quantity,
            },
        )
        return True

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def reserve(
        self, batch_id: UUID, store_id: UUID, quantity: int, actor_id: UUID,
    ) -> InventoryBatchModel:
        """Move ``quantity`` of a store's unreserved units into its reservation."""
        _require_positive("quantity", quantity)
        batch = self._lock_batch(batch_id)
        current = get_store_allocation(batch.allocations, store_id)
        reserved = current.reserved if current is not None else 0
        self._write_ledger(
            batch,
            with_reservation(
                batch.allocations,
                store_id,
                reserved + quantity,
                actor_id,
                batch_id=batch_id,
                clock=self.clock,
            ),
            actor_id,
        )
        self._flush("InventoryBatch", batch_id)
        logger.info(
            "allocation_reserved",
            extra={"batch_id": str(batch_id), "store_id": str(store_id), "quantity": quantity},
        )
        return batch

    def release_reservation(
        self, batch_id: UUID, store_id: UUID, quantity: int, actor_id: UUID,
    ) -> InventoryBatchModel:
        _require_positive("quantity", quantity)
        batch = self._lock_batch(batch_id)
        current = get_store_allocation(batch.allocations, store_id)
        reserved = current.reserved if current is not None else 0
        if quantity > reserved:
            raise InsufficientAllocationError(str(store_id), str(batch_id), quantity, reserved)
        self._write_ledger(
            batch,
            with_reservation(
                batch.allocations,
                store_id,
                reserved - quantity,
                actor_id,
                batch_id=batch_id,
                clock=self.clock,
            ),
            actor_id,
        )
        self._flush("InventoryBatch", batch_id)
        logger.info(
            "allocation_reservation_released",
            extra={"batch_id": str(batch_id), "store_id": str(store_id), "quantity": quantity},
        )
        return batch

    def remove_empty_allocation(
        self, batch_id: UUID, store_id: UUID, actor_id: UUID | str,
    ) -> bool:
        """Drop a zero/zero ledger entry.  Returns False when there is none."""
        batch = self._lock_batch(batch_id)
        allocations = batch.allocations
        current = get_store_allocation(allocations, store_id)
        if current is None:
            return False
        if not current.is_empty:
            raise StoreInUseError(
                str(store_id),
                f"holds {current.allocated} allocated and {current.reserved} "
                f"reserved units of batch {batch_id}",
            )
        self._write_ledger(batch, remove_store_allocation(allocations, str(store_id)), actor_id)
        self._flush("InventoryBatch", batch_id)
        logger.info(
            "empty_allocation_removed",
            extra={"batch_id": str(batch_id), "store_id": str(store_id)},
        )
        return True
