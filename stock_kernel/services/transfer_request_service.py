"""
stock_kernel.services.transfer_request_service -- Transfer request lifecycle.

Responsibility:
    Creates transfer requests against a batch, records the source store's
    decision, applies the movement when the target store confirms, and
    cancels open requests.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.

Invariants enforced:
    - TRANSFER_REQUEST_TRANSITIONS is checked before every status write;
      REJECTED, COMPLETED and CANCELLED are terminal.
    - At most one open request per (source, target, batch): service check
      under the batch lock, backed by a partial unique index.
    - Creation and approval move no quantity.  Confirmation applies the
      two-sided ledger mutation and the COMPLETED status in one flush.
    - Every transition locks the request, then its batch, and rewrites the
      batch row so concurrent activity on one batch serializes on its
      version counter.
    - The approver must be authorized at the source store, the confirmer at
      the target store (domain.access.evaluate_store_access).

Failure modes:
    - InvalidQuantityError / InvalidTransferRequestError for malformed input.
    - InventoryBatchNotFoundError, StoreNotFoundError,
      TransferRequestNotFoundError.
    - DuplicateTransferRequestError for a second open request.
    - InsufficientAllocationError, InvalidApprovedQuantityError,
      StoreHierarchyViolationError, InvalidTransferRequestStateError.
    - StoreAccessDeniedError.
    - OptimisticLockError when a concurrent transaction won the race.

Audit relevance:
    Requests are never deleted.  Each row keeps requester, decider and
    confirmer identities with display names and timestamps.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.db.tenancy import require_tenant_id
from stock_kernel.domain.access import (
    APPROVE_TRANSFER_PERMISSIONS,
    EXECUTE_TRANSFER_PERMISSIONS,
    RECEIVE_TRANSFER_PERMISSIONS,
    ActorDirectory,
)
from stock_kernel.domain.allocation import get_store_allocation, transfer_allocation
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.hierarchy import can_request, can_transfer
from stock_kernel.domain.transfer import (
    APPROVED_TRANSFER_REQUEST_STATUSES,
    OPEN_TRANSFER_REQUEST_STATUSES,
    TransferDecision,
    TransferRequest,
    TransferRequestStatus,
    TransferRequestType,
    approval_status_for,
    is_valid_transition,
)
from stock_kernel.exceptions import (
    DuplicateTransferRequestError,
    InsufficientAllocationError,
    InvalidApprovedQuantityError,
    InvalidQuantityError,
    InvalidTransferRequestError,
    InvalidTransferRequestStateError,
    StoreHierarchyViolationError,
    TransferRequestNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.transfer_request import TransferRequestModel
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService, require_store_access

logger = get_logger("services.transfer_request")


def _state_names(statuses) -> tuple[str, ...]:
    return tuple(sorted(s.value for s in statuses))


class TransferRequestService(BaseService):
    """Create, decide, confirm and cancel transfer requests."""

    def __init__(
        self,
        session: Session,
        directory: ActorDirectory,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._directory = directory

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _lock_request(self, request_id: UUID) -> TransferRequestModel:
        model = self.session.execute(
            select(TransferRequestModel)
            .where(TransferRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))
        return model

    def _transition(
        self,
        model: TransferRequestModel,
        new_status: TransferRequestStatus,
        required: frozenset[TransferRequestStatus],
        operation: str,
    ) -> None:
        current = model.request_status
        if current not in required or not is_valid_transition(current, new_status):
            raise InvalidTransferRequestStateError(
                str(model.id), current.value, _state_names(required), operation,
            )
        model.status = new_status.value

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_request(
        self,
        target_store_id: UUID,
        batch_id: UUID,
        source_store_id: UUID | None,
        requested_quantity: int,
        reason: str,
        actor_id: UUID,
        request_type: TransferRequestType = TransferRequestType.TRANSFER,
    ) -> TransferRequest:
        """Open a PENDING request for ``requested_quantity`` units of a batch.

        An ALLOCATION request without a source draws from the MAIN store.
        """
        require_tenant_id(self.session, "create transfer request")
        if (
            isinstance(requested_quantity, bool)
            or not isinstance(requested_quantity, int)
            or requested_quantity < 1
        ):
            raise InvalidQuantityError("requested_quantity", requested_quantity)

        stores = StoreSelector(self.session)
        if source_store_id is None:
            if request_type is not TransferRequestType.ALLOCATION:
                raise InvalidTransferRequestError(
                    "Source store ID is required for transfer requests"
                )
            source_store_id = stores.get_main_store().store_id
        if source_store_id == target_store_id:
            raise InvalidTransferRequestError("Source and target store must differ")

        batch = self._lock_batch(batch_id)
        source = self._lock_store(source_store_id, shared=True).to_node()
        target = self._lock_store(target_store_id, shared=True).to_node()

        duplicate = self.session.execute(
            select(TransferRequestModel.id).where(
                TransferRequestModel.batch_id == batch_id,
                TransferRequestModel.source_store_id == source_store_id,
                TransferRequestModel.target_store_id == target_store_id,
                TransferRequestModel.status.in_(
                    [s.value for s in OPEN_TRANSFER_REQUEST_STATUSES]
                ),
            )
        ).first()
        if duplicate is not None:
            raise DuplicateTransferRequestError(
                str(source_store_id), str(target_store_id), str(batch_id),
            )

        entry = get_store_allocation(batch.allocations, source_store_id)
        allocated = entry.allocated if entry is not None else 0
        if allocated < requested_quantity:
            raise InsufficientAllocationError(
                str(source_store_id), str(batch_id), requested_quantity, allocated,
            )

        if not can_request(target, source):
            push = can_transfer(source, target)
            if not push.allowed:
                raise StoreHierarchyViolationError(
                    str(source_store_id), str(target_store_id),
                    push.reason or "stores are not related",
                )

        model = TransferRequestModel(
            batch_id=batch_id,
            request_type=request_type.value,
            source_store_id=source_store_id,
            target_store_id=target_store_id,
            requested_quantity=requested_quantity,
            status=TransferRequestStatus.PENDING.value,
            reason=reason or "",
            requested_by_id=actor_id,
            requested_by_name=self._directory.display_name(actor_id),
            requested_at=self.clock.now(),
        )
        self.session.add(model)
        self._touch_batch(batch, actor_id)
        try:
            self._flush("InventoryBatch", batch_id)
        except IntegrityError as exc:
            raise DuplicateTransferRequestError(
                str(source_store_id), str(target_store_id), str(batch_id),
            ) from exc

        logger.info(
            "transfer_request_created",
            extra={
                "request_id": str(model.id),
                "batch_id": str(batch_id),
                "source_store_id": str(source_store_id),
                "target_store_id": str(target_store_id),
                "quantity": requested_quantity,
                "request_type": request_type.value,
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    def decide(
        self,
        request_id: UUID,
        decision: TransferDecision,
        actor_id: UUID,
        approved_quantity: int | None = None,
        rejection_reason: str | None = None,
    ) -> TransferRequest:
        """Approve (fully or partially) or reject a PENDING request."""
        model = self._lock_request(request_id)
        operation = "approve" if decision is TransferDecision.APPROVED else "reject"
        require_store_access(
            self._directory, actor_id, model.source_store_id, APPROVE_TRANSFER_PERMISSIONS,
        )
        pending = frozenset({TransferRequestStatus.PENDING})
        if model.request_status not in pending:
            raise InvalidTransferRequestStateError(
                str(request_id), model.status, _state_names(pending), operation,
            )
        batch = self._lock_batch(model.batch_id)

        if decision is TransferDecision.APPROVED:
            quantity = (
                model.requested_quantity if approved_quantity is None else approved_quantity
            )
            if (
                isinstance(quantity, bool)
                or not isinstance(quantity, int)
                or quantity < 1
                or quantity > model.requested_quantity
            ):
                raise InvalidApprovedQuantityError(
                    str(request_id), quantity, model.requested_quantity,
                )
            entry = get_store_allocation(batch.allocations, model.source_store_id)
            allocated = entry.allocated if entry is not None else 0
            if allocated < quantity:
                raise InsufficientAllocationError(
                    str(model.source_store_id), str(batch.id), quantity, allocated,
                )
            self._transition(
                model,
                approval_status_for(model.requested_quantity, quantity),
                pending,
                operation,
            )
            model.approved_quantity = quantity
        else:
            if not rejection_reason or not rejection_reason.strip():
                raise InvalidTransferRequestError("Rejection reason is required")
            self._transition(model, TransferRequestStatus.REJECTED, pending, operation)
            model.rejection_reason = rejection_reason.strip()

        model.approved_by_id = actor_id
        model.approved_by_name = self._directory.display_name(actor_id)
        model.approved_at = self.clock.now()
        self._touch_batch(batch, actor_id)
        self._flush("TransferRequest", request_id)

        logger.info(
            "transfer_request_decided",
            extra={
                "request_id": str(request_id),
                "batch_id": str(batch.id),
                "decision": decision.value,
                "new_status": model.status,
                "approved_quantity": model.approved_quantity,
            },
        )
        return model.to_dto()

    def approve(
        self,
        request_id: UUID,
        actor_id: UUID,
        approved_quantity: int | None = None,
    ) -> TransferRequest:
        return self.decide(
            request_id, TransferDecision.APPROVED, actor_id,
            approved_quantity=approved_quantity,
        )

    def reject(self, request_id: UUID, actor_id: UUID, reason: str) -> TransferRequest:
        return self.decide(
            request_id, TransferDecision.REJECTED, actor_id, rejection_reason=reason,
        )

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------

    def confirm(self, request_id: UUID, actor_id: UUID) -> TransferRequest:
        """Receive an approved request at the target store and move the units."""
        model = self._lock_request(request_id)
        require_store_access(
            self._directory, actor_id, model.target_store_id, RECEIVE_TRANSFER_PERMISSIONS,
        )
        if model.request_status not in APPROVED_TRANSFER_REQUEST_STATUSES:
            raise InvalidTransferRequestStateError(
                str(request_id),
                model.status,
                _state_names(APPROVED_TRANSFER_REQUEST_STATUSES),
                "confirm",
            )
        batch = self._lock_batch(model.batch_id)
        self._lock_store(model.target_store_id, shared=True)
        quantity = model.approved_quantity or model.requested_quantity

        allocations = transfer_allocation(
            batch.allocations,
            model.source_store_id,
            model.target_store_id,
            quantity,
            actor_id,
            batch_id=batch.id,
            clock=self.clock,
        )
        self._write_ledger(batch, allocations, actor_id)
        self._transition(
            model,
            TransferRequestStatus.COMPLETED,
            APPROVED_TRANSFER_REQUEST_STATUSES,
            "confirm",
        )
        model.confirmed_by_id = actor_id
        model.confirmed_by_name = self._directory.display_name(actor_id)
        model.confirmed_at = self.clock.now()
        self._touch_batch(batch, actor_id)
        self._flush("TransferRequest", request_id)

        logger.info(
            "transfer_request_confirmed",
            extra={
                "request_id": str(request_id),
                "batch_id": str(batch.id),
                "source_store_id": str(model.source_store_id),
                "target_store_id": str(model.target_store_id),
                "quantity": quantity,
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel_request(self, request_id: UUID, actor_id: UUID) -> TransferRequest:
        """Withdraw an open request.  Allowed for the requester or the target store."""
        model = self._lock_request(request_id)
        if model.requested_by_id != actor_id:
            require_store_access(
                self._directory, actor_id, model.target_store_id, EXECUTE_TRANSFER_PERMISSIONS,
            )
        batch = self._lock_batch(model.batch_id)
        self._transition(
            model, TransferRequestStatus.CANCELLED, OPEN_TRANSFER_REQUEST_STATUSES, "cancel",
        )
        model.cancelled_by_id = actor_id
        model.cancelled_at = self.clock.now()
        self._touch_batch(batch, actor_id)
        self._flush("TransferRequest", request_id)

        logger.info(
            "transfer_request_cancelled",
            extra={"request_id": str(request_id), "batch_id": str(batch.id)},
        )
        return model.to_dto()
