"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor, flush handling, batch locking and ledger writes for
    every service in the kernel layer.  Concrete services receive a
    SQLAlchemy ``Session`` bound to a tenant scope and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.
    - Every ledger write validates the new map against the batch quantity
      and recomputes the aggregate columns in the same statement.
    - Rows that decisions depend on are loaded FOR UPDATE with
      populate_existing, so checks run against the locked, current state.
    - A write that credits or names a store holds that store row FOR SHARE,
      which serializes it against the store's deactivation (FOR UPDATE).
    - A lost update surfaces as OptimisticLockError, never as a silent
      overwrite.

Failure modes:
    - OptimisticLockError when a version counter moved under the service.
    - AllocationInvariantError when a ledger write would over-allocate or
      reserve more than is allocated.
    - StoreAccessDeniedError from require_store_access.
"""

from __future__ import annotations

from abc import ABC
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.domain.access import ActorDirectory, Permission, evaluate_store_access
from stock_kernel.domain.allocation import AllocationMap, ledger_violations
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import (
    AllocationInvariantError,
    InventoryBatchNotFoundError,
    OptimisticLockError,
    StoreAccessDeniedError,
    StoreNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryBatchModel
from stock_kernel.models.store import StoreModel

logger = get_logger("services.base")


def require_store_access(
    directory: ActorDirectory,
    actor_id: UUID,
    store_id: UUID,
    required: Iterable[Permission],
) -> None:
    """Raise StoreAccessDeniedError unless the policy allows the actor."""
    required = tuple(required)
    decision = evaluate_store_access(directory.grants_for(actor_id), store_id, required)
    if not decision.allowed:
        logger.warning(
            "store_access_denied",
            extra={
                "actor_id": str(actor_id),
                "store_id": str(store_id),
                "required": [str(p) for p in required],
                "reason": decision.reason,
            },
        )
        raise StoreAccessDeniedError(
            str(actor_id),
            str(store_id),
            tuple(str(p) for p in required),
            decision.reason,
        )


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a tenant-scoped ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - Time comes from the injected clock only.

    Non-goals:
        - Read-only listings; those belong in ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _flush(self, entity_type: str, entity_id: object) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise OptimisticLockError(entity_type, str(entity_id)) from exc

    def _lock_batch(self, batch_id: UUID) -> InventoryBatchModel:
        """Load an active batch FOR UPDATE, refreshing any stale copy."""
        batch = self.session.execute(
            select(InventoryBatchModel)
            .where(
                InventoryBatchModel.id == batch_id,
                InventoryBatchModel.deleted_at.is_(None),
            )
            .with_for_update(of=InventoryBatchModel)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise InventoryBatchNotFoundError(str(batch_id))
        return batch

    def _lock_store(self, store_id: UUID, *, shared: bool = False) -> StoreModel:
        """Load an active store FOR UPDATE, or FOR SHARE when ``shared``."""
        store = self.session.execute(
            select(StoreModel)
            .where(StoreModel.id == store_id, StoreModel.deleted_at.is_(None))
            .with_for_update(read=shared, of=StoreModel)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if store is None:
            raise StoreNotFoundError(str(store_id))
        return store

    def _write_ledger(
        self,
        batch: InventoryBatchModel,
        allocations: AllocationMap,
        actor_id: object,
    ) -> None:
        """Replace the batch ledger after validating it."""
        violations = ledger_violations(allocations, batch.number_of_stock)
        if violations:
            raise AllocationInvariantError(str(batch.id), violations)
        batch.replace_allocations(allocations)
        batch.updated_by_id = str(actor_id)

    def _touch_batch(self, batch: InventoryBatchModel, actor_id: object) -> None:
        """Force an UPDATE of the batch row so its version counter moves."""
        batch.updated_by_id = str(actor_id)
        flag_modified(batch, "updated_by_id")
