"""
stock_kernel.services.store_request_service -- Store requests.

Responsibility:
    A store asks its parent (or the MAIN store) for units of a batch; the
    supplying store approves, which immediately fulfils the request with a
    REQUEST_FULFILLMENT direct transfer, or rejects it.

Architecture position:
    Kernel > Services.  Delegates the movement to DirectTransferService.

Invariants enforced:
    - A store may only request from its direct parent or the MAIN store.
    - Only PENDING requests can be approved or rejected.
    - Approval, the movement and the FULFILLED status land in one flush
      sequence inside the caller's transaction.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.access import APPROVE_TRANSFER_PERMISSIONS, ActorDirectory
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.hierarchy import can_request
from stock_kernel.domain.transfer import (
    StoreRequest,
    StoreRequestPriority,
    StoreRequestStatus,
    document_number,
)
from stock_kernel.exceptions import (
    InventoryBatchNotFoundError,
    InvalidApprovedQuantityError,
    InvalidQuantityError,
    InvalidStoreRequestStateError,
    InvalidTransferRequestError,
    StoreHierarchyViolationError,
    StoreRequestNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryBatchModel
from stock_kernel.models.store_request import StoreRequestModel
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService, require_store_access
from stock_kernel.services.direct_transfer_service import (
    DEFAULT_TRANSFER_PREFIX,
    DirectTransferService,
)

logger = get_logger("services.store_request")

DEFAULT_REQUEST_PREFIX = "REQ"


class StoreRequestService(BaseService):
    """Create, approve-and-fulfil, and reject store requests."""

    def __init__(
        self,
        session: Session,
        directory: ActorDirectory,
        clock: Clock | None = None,
        request_prefix: str = DEFAULT_REQUEST_PREFIX,
        transfer_prefix: str = DEFAULT_TRANSFER_PREFIX,
    ):
        super().__init__(session, clock)
        self._directory = directory
        self._request_prefix = request_prefix
        self._transfers = DirectTransferService(
            session, directory, clock=self.clock, transfer_prefix=transfer_prefix,
        )

    def _lock_request(self, request_id: UUID) -> StoreRequestModel:
        model = self.session.execute(
            select(StoreRequestModel)
            .where(StoreRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise StoreRequestNotFoundError(str(request_id))
        return model

    def create_request(
        self,
        requesting_store_id: UUID,
        supplying_store_id: UUID,
        batch_id: UUID,
        quantity: int,
        actor_id: UUID,
        priority: StoreRequestPriority = StoreRequestPriority.MEDIUM,
        justification: str | None = None,
        expected_date: date | None = None,
    ) -> StoreRequest:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError("requested_quantity", quantity)

        stores = StoreSelector(self.session)
        requesting = stores.get_store(requesting_store_id)
        supplying = stores.get_store(supplying_store_id)
        if not can_request(requesting, supplying):
            raise StoreHierarchyViolationError(
                str(supplying_store_id),
                str(requesting_store_id),
                "stores can only request from their parent store or the main store",
            )
        batch = self.session.get(InventoryBatchModel, batch_id)
        if batch is None or batch.deleted_at is not None:
            raise InventoryBatchNotFoundError(str(batch_id))

        now = self.clock.now()
        request_id = uuid4()
        model = StoreRequestModel(
            id=request_id,
            request_number=document_number(self._request_prefix, now, request_id),
            requesting_store_id=requesting_store_id,
            supplying_store_id=supplying_store_id,
            batch_id=batch_id,
            requested_quantity=quantity,
            priority=priority.value,
            status=StoreRequestStatus.PENDING.value,
            justification=justification,
            expected_date=expected_date,
            requested_by_id=actor_id,
            requested_at=now,
        )
        self.session.add(model)
        self._flush("StoreRequest", request_id)

        logger.info(
            "store_request_created",
            extra={
                "request_id": str(request_id),
                "request_number": model.request_number,
                "requesting_store_id": str(requesting_store_id),
                "supplying_store_id": str(supplying_store_id),
                "quantity": quantity,
                "priority": priority.value,
            },
        )
        return model.to_dto()

    def approve(
        self,
        request_id: UUID,
        actor_id: UUID,
        approved_quantity: int | None = None,
        notes: str | None = None,
    ) -> StoreRequest:
        """Approve and fulfil in one step; the request ends FULFILLED."""
        model = self._lock_request(request_id)
        require_store_access(
            self._directory, actor_id, model.supplying_store_id, APPROVE_TRANSFER_PERMISSIONS,
        )
        if model.status != StoreRequestStatus.PENDING.value:
            raise InvalidStoreRequestStateError(str(request_id), model.status, "approve")

        quantity = model.requested_quantity if approved_quantity is None else approved_quantity
        if (
            isinstance(quantity, bool)
            or not isinstance(quantity, int)
            or quantity < 1
            or quantity > model.requested_quantity
        ):
            raise InvalidApprovedQuantityError(
                str(request_id), quantity, model.requested_quantity,
            )

        now = self.clock.now()
        model.status = (
            StoreRequestStatus.APPROVED.value
            if quantity == model.requested_quantity
            else StoreRequestStatus.PARTIALLY_APPROVED.value
        )
        model.approved_quantity = quantity
        model.reviewed_by_id = actor_id
        model.reviewed_at = now
        model.review_notes = notes
        self._flush("StoreRequest", request_id)

        transfer = self._transfers.fulfil_store_request(
            request_id,
            model.batch_id,
            model.supplying_store_id,
            model.requesting_store_id,
            quantity,
            actor_id,
            notes=f"Fulfilling request {model.request_number}",
        )

        model.status = StoreRequestStatus.FULFILLED.value
        model.fulfilled_transfer_id = transfer.transfer_id
        model.fulfilled_at = transfer.completed_at
        self._flush("StoreRequest", request_id)

        logger.info(
            "store_request_fulfilled",
            extra={
                "request_id": str(request_id),
                "transfer_id": str(transfer.transfer_id),
                "quantity": quantity,
            },
        )
        return model.to_dto()

    def reject(self, request_id: UUID, actor_id: UUID, reason: str) -> StoreRequest:
        model = self._lock_request(request_id)
        require_store_access(
            self._directory, actor_id, model.supplying_store_id, APPROVE_TRANSFER_PERMISSIONS,
        )
        if model.status != StoreRequestStatus.PENDING.value:
            raise InvalidStoreRequestStateError(str(request_id), model.status, "reject")
        if not reason or not reason.strip():
            raise InvalidTransferRequestError("Rejection reason is required")

        model.status = StoreRequestStatus.REJECTED.value
        model.rejection_reason = reason.strip()
        model.reviewed_by_id = actor_id
        model.reviewed_at = self.clock.now()
        self._flush("StoreRequest", request_id)

        logger.info("store_request_rejected", extra={"request_id": str(request_id)})
        return model.to_dto()
