"""
stock_kernel.services.direct_transfer_service -- Single-step transfers.

Responsibility:
    Moves units of a batch between two stores in one authorized step and
    appends the immutable StoreTransfer record.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - The store pair must pass domain.hierarchy.can_transfer.
    - The actor must be authorized at the source store.
    - The ledger mutation is the same two-sided transfer_allocation used by
      request confirmation, applied under the batch lock.
    - Transfer records are append-only (db/immutability.py).

Failure modes:
    - InvalidQuantityError, StoreNotFoundError, InventoryBatchNotFoundError.
    - StoreHierarchyViolationError, StoreAccessDeniedError,
      InsufficientAllocationError, OptimisticLockError.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain.access import EXECUTE_TRANSFER_PERMISSIONS, ActorDirectory
from stock_kernel.domain.allocation import transfer_allocation
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.hierarchy import can_transfer
from stock_kernel.domain.transfer import StoreTransfer, TransferType, document_number
from stock_kernel.exceptions import InvalidQuantityError, StoreHierarchyViolationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.store_transfer import StoreTransferModel
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService, require_store_access

logger = get_logger("services.direct_transfer")

DEFAULT_TRANSFER_PREFIX = "TRF"


class DirectTransferService(BaseService):
    """Executes authorized store-to-store movements."""

    def __init__(
        self,
        session: Session,
        directory: ActorDirectory,
        clock: Clock | None = None,
        transfer_prefix: str = DEFAULT_TRANSFER_PREFIX,
    ):
        super().__init__(session, clock)
        self._directory = directory
        self._transfer_prefix = transfer_prefix

    def execute_transfer(
        self,
        batch_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        quantity: int,
        actor_id: UUID,
        transfer_type: TransferType = TransferType.DISTRIBUTION,
        notes: str | None = None,
    ) -> StoreTransfer:
        """Move ``quantity`` units and record the transfer."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError("quantity", quantity)
        self._check_hierarchy(from_store_id, to_store_id)
        require_store_access(
            self._directory, actor_id, from_store_id, EXECUTE_TRANSFER_PERMISSIONS,
        )
        return self._move(
            batch_id, from_store_id, to_store_id, quantity, actor_id,
            transfer_type, notes, None,
        )

    def fulfil_store_request(
        self,
        store_request_id: UUID,
        batch_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        quantity: int,
        actor_id: UUID,
        notes: str | None = None,
    ) -> StoreTransfer:
        """Movement for an approved store request.

        The caller has already authorized the actor at the supplying store.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError("quantity", quantity)
        self._check_hierarchy(from_store_id, to_store_id)
        return self._move(
            batch_id, from_store_id, to_store_id, quantity, actor_id,
            TransferType.REQUEST_FULFILLMENT, notes, store_request_id,
        )

    def _check_hierarchy(self, from_store_id: UUID, to_store_id: UUID) -> None:
        stores = StoreSelector(self.session)
        decision = can_transfer(stores.get_store(from_store_id), stores.get_store(to_store_id))
        if not decision.allowed:
            raise StoreHierarchyViolationError(
                str(from_store_id), str(to_store_id), decision.reason or "not allowed",
            )

    def _move(
        self,
        batch_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        quantity: int,
        actor_id: UUID,
        transfer_type: TransferType,
        notes: str | None,
        store_request_id: UUID | None,
    ) -> StoreTransfer:
        batch = self._lock_batch(batch_id)
        self._lock_store(to_store_id, shared=True)
        allocations = transfer_allocation(
            batch.allocations,
            from_store_id,
            to_store_id,
            quantity,
            actor_id,
            batch_id=batch_id,
            clock=self.clock,
        )
        self._write_ledger(batch, allocations, actor_id)
        self._touch_batch(batch, actor_id)

        now = self.clock.now()
        transfer_id = uuid4()
        record = StoreTransferModel(
            id=transfer_id,
            transfer_number=document_number(self._transfer_prefix, now, transfer_id),
            batch_id=batch_id,
            from_store_id=from_store_id,
            to_store_id=to_store_id,
            quantity=quantity,
            transfer_type=transfer_type.value,
            initiated_by_id=actor_id,
            initiated_by_name=self._directory.display_name(actor_id),
            notes=notes,
            store_request_id=store_request_id,
            completed_at=now,
        )
        self.session.add(record)
        self._flush("InventoryBatch", batch_id)

        logger.info(
            "direct_transfer_executed",
            extra={
                "transfer_id": str(transfer_id),
                "transfer_number": record.transfer_number,
                "batch_id": str(batch_id),
                "from_store_id": str(from_store_id),
                "to_store_id": str(to_store_id),
                "quantity": quantity,
                "transfer_type": transfer_type.value,
            },
        )
        return record.to_dto()
