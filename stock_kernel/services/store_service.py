"""
stock_kernel.services.store_service -- Store directory writes.

Responsibility:
    Creating stores in the tenant hierarchy and retiring them.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - One active MAIN store per tenant (service check, backed by a partial
      unique index).
    - REGIONAL under MAIN, SUB_REGIONAL under REGIONAL, nothing under
      SUB_REGIONAL (domain.hierarchy.validate_store_placement).
    - A store is never soft-deleted while it holds allocation, has active
      children, or takes part in an open transfer request.

Failure modes:
    - MainStoreAlreadyExistsError, InvalidStorePlacementError,
      StoreNotFoundError, StoreInUseError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from stock_kernel.domain.allocation import get_store_allocation
from stock_kernel.domain.hierarchy import (
    StoreClassification,
    StoreNode,
    validate_store_placement,
)
from stock_kernel.domain.transfer import OPEN_TRANSFER_REQUEST_STATUSES
from stock_kernel.exceptions import (
    InvalidStorePlacementError,
    MainStoreAlreadyExistsError,
    StoreInUseError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryBatchModel
from stock_kernel.models.store import StoreModel
from stock_kernel.models.transfer_request import TransferRequestModel
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService

logger = get_logger("services.store")


class StoreService(BaseService):
    """Store creation and retirement."""

    def create_store(
        self,
        name: str,
        classification: StoreClassification,
        actor_id: UUID | str,
        parent_id: UUID | None = None,
    ) -> StoreNode:
        if not name or not name.strip():
            raise InvalidStorePlacementError(
                classification.value,
                str(parent_id) if parent_id else None,
                "store name must not be empty",
            )
        stores = StoreSelector(self.session)
        existing_main = stores.find_main_store()
        if classification is StoreClassification.MAIN and existing_main is not None:
            raise MainStoreAlreadyExistsError(str(existing_main.store_id))

        parent = stores.get_store(parent_id) if parent_id is not None else None
        decision = validate_store_placement(classification, parent, existing_main)
        if not decision.allowed:
            raise InvalidStorePlacementError(
                classification.value,
                str(parent_id) if parent_id else None,
                decision.reason or "placement not allowed",
            )

        model = StoreModel(
            name=name.strip(),
            classification=classification.value,
            parent_id=parent_id,
            created_by_id=str(actor_id),
        )
        self.session.add(model)
        try:
            self.session.flush()
        except IntegrityError as exc:
            if classification is StoreClassification.MAIN:
                raise MainStoreAlreadyExistsError("unknown") from exc
            raise

        logger.info(
            "store_created",
            extra={
                "store_id": str(model.id),
                "classification": classification.value,
                "parent_id": str(parent_id) if parent_id else None,
            },
        )
        return model.to_node()

    def ensure_main_store(self, name: str, actor_id: UUID | str) -> StoreNode:
        """Return the MAIN store, creating it when the tenant has none."""
        existing = StoreSelector(self.session).find_main_store()
        if existing is not None:
            return existing
        return self.create_store(name, StoreClassification.MAIN, actor_id)

    def deactivate_store(self, store_id: UUID, actor_id: UUID | str) -> None:
        """Soft-delete a store that no longer holds or awaits stock.

        The store row is locked first, so a transfer crediting this store
        either commits before the checks below or fails afterwards with
        StoreNotFoundError.
        """
        model = self._lock_store(store_id)
        stores = StoreSelector(self.session)

        if stores.children(store_id):
            raise StoreInUseError(str(store_id), "store has active child stores")

        for batch in self.session.execute(
            select(InventoryBatchModel).where(InventoryBatchModel.deleted_at.is_(None))
        ).scalars():
            entry = get_store_allocation(batch.allocations, store_id)
            if entry is not None and not entry.is_empty:
                raise StoreInUseError(
                    str(store_id),
                    f"store holds {entry.allocated} units of batch {batch.batch_number}",
                )

        open_requests = self.session.execute(
            select(TransferRequestModel.id)
            .where(
                or_(
                    TransferRequestModel.source_store_id == store_id,
                    TransferRequestModel.target_store_id == store_id,
                ),
                TransferRequestModel.status.in_(
                    [s.value for s in OPEN_TRANSFER_REQUEST_STATUSES]
                ),
            )
            .limit(1)
        ).first()
        if open_requests is not None:
            raise StoreInUseError(str(store_id), "store has open transfer requests")

        model.is_active = False
        model.deleted_at = self.clock.now()
        model.updated_by_id = str(actor_id)
        self._flush("Store", store_id)
        logger.info("store_deactivated", extra={"store_id": str(store_id)})
