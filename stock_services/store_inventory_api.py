"""
stock_services.store_inventory_api -- Store inventory operations.

Responsibility:
    The logical operations the HTTP layer exposes, with camelCase
    dictionaries in and out, and the mapping from kernel error kinds to
    transport status codes.  Routing and authentication are out of scope:
    callers pass an already tenant-scoped session and the authenticated
    actor.

Architecture position:
    Services.  Wires kernel services and selectors from configuration;
    holds no state beyond one request.

Failure modes:
    - Every kernel error propagates unchanged; ``http_status_for`` and
      ``error_body`` render it.
    - Malformed bodies raise InvalidTransferRequestError (INVALID_ARGUMENT).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from stock_config.schema import StockConfiguration
from stock_kernel.db.tenancy import get_tenant_scope, require_tenant_id
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.transfer import (
    StoreRequest,
    StoreRequestPriority,
    StoreRequestStatus,
    StoreTransfer,
    TransferDecision,
    TransferRequestStatus,
    TransferRequestType,
    TransferType,
)
from stock_kernel.domain.views import InventoryView, Page, TransferRequestView
from stock_kernel.exceptions import (
    ErrorKind,
    InvalidTransferRequestError,
    StockKernelError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.actor_selector import ActorSelector
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.selectors.transfer_selector import TransferSelector
from stock_kernel.services.direct_transfer_service import DirectTransferService
from stock_kernel.services.store_request_service import StoreRequestService
from stock_kernel.services.transfer_request_service import TransferRequestService

logger = get_logger("services.store_inventory_api")

HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.PRECONDITION_FAILED: 401,
}


def http_status_for(exc: BaseException) -> int:
    """Transport status for an exception; 500 for anything not from the kernel."""
    if isinstance(exc, StockKernelError):
        return HTTP_STATUS_BY_KIND[exc.kind]
    return 500


def error_body(exc: BaseException) -> dict[str, str]:
    """Response body for an exception.  Internal errors are logged, not echoed."""
    if isinstance(exc, StockKernelError):
        return {"code": exc.code, "kind": exc.kind.value, "message": str(exc)}
    logger.error(
        "internal_error",
        extra={"error_type": type(exc).__name__},
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return {"code": "INTERNAL_ERROR", "kind": "INTERNAL", "message": "Internal server error"}


# ---------------------------------------------------------------------------
# Body parsing
# ---------------------------------------------------------------------------


def _uuid(body: Mapping[str, Any], key: str, *, required: bool = True) -> UUID | None:
    value = body.get(key)
    if value is None or value == "":
        if required:
            raise InvalidTransferRequestError(f"{key} is required")
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidTransferRequestError(f"{key} must be a UUID") from exc


def _enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidTransferRequestError(f"{key} must be one of: {allowed}") from exc


def _date(body: Mapping[str, Any], key: str) -> date | None:
    value = body.get(key)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTransferRequestError(f"{key} must be an ISO date") from exc


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str(value: Any) -> str | None:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _request_to_dict(view: TransferRequestView) -> dict[str, Any]:
    r = view.request
    return {
        "requestId": str(r.request_id),
        "type": r.request_type.value,
        "sourceStoreId": str(r.source_store_id),
        "sourceStoreName": view.source_store_name,
        "targetStoreId": str(r.target_store_id),
        "targetStoreName": view.target_store_name,
        "inventoryBatchId": str(r.batch_id),
        "inventoryId": str(view.inventory_id),
        "inventoryName": view.inventory_name,
        "batchNumber": view.batch_number,
        "requestedQuantity": r.requested_quantity,
        "approvedQuantity": r.approved_quantity,
        "status": r.status.value,
        "reason": r.reason,
        "requestedBy": str(r.requested_by),
        "requestedByName": r.requested_by_name,
        "requestedAt": _iso(r.requested_at),
        "approvedBy": _str(r.approved_by),
        "approvedByName": r.approved_by_name,
        "approvedAt": _iso(r.approved_at),
        "rejectionReason": r.rejection_reason,
        "confirmedBy": _str(r.confirmed_by),
        "confirmedByName": r.confirmed_by_name,
        "confirmedAt": _iso(r.confirmed_at),
    }


def _inventory_to_dict(view: InventoryView) -> dict[str, Any]:
    return {
        "inventoryId": str(view.inventory_id),
        "inventoryName": view.inventory_name,
        "batches": [
            {
                "batchId": str(b.batch_id),
                "batchNumber": b.batch_number,
                "totalQuantity": b.total_quantity,
                "allocatedToStore": b.allocated_to_store,
                "reservedInStore": b.reserved_in_store,
                "availableInStore": b.available_in_store,
                "unitPrice": str(b.unit_price),
                "isOwnedByStore": b.is_owned_by_store,
                "ownerStoreName": b.owner_store_name,
            }
            for b in view.batches
        ],
        "totalAllocated": view.total_allocated,
        "totalAvailable": view.total_available,
    }


def _transfer_to_dict(t: StoreTransfer) -> dict[str, Any]:
    return {
        "transferId": str(t.transfer_id),
        "transferNumber": t.transfer_number,
        "inventoryBatchId": str(t.batch_id),
        "fromStoreId": str(t.from_store_id),
        "toStoreId": str(t.to_store_id),
        "quantity": t.quantity,
        "transferType": t.transfer_type.value,
        "initiatedBy": str(t.initiated_by),
        "initiatedByName": t.initiated_by_name,
        "notes": t.notes,
        "storeRequestId": _str(t.store_request_id),
        "completedAt": _iso(t.completed_at),
    }


def _store_request_to_dict(r: StoreRequest) -> dict[str, Any]:
    return {
        "requestId": str(r.request_id),
        "requestNumber": r.request_number,
        "requestingStoreId": str(r.requesting_store_id),
        "supplyingStoreId": str(r.supplying_store_id),
        "inventoryBatchId": str(r.batch_id),
        "requestedQuantity": r.requested_quantity,
        "approvedQuantity": r.approved_quantity,
        "priority": r.priority.value,
        "status": r.status.value,
        "justification": r.justification,
        "expectedDate": _iso(r.expected_date),
        "requestedBy": str(r.requested_by),
        "requestedAt": _iso(r.requested_at),
        "reviewedBy": _str(r.reviewed_by),
        "reviewedAt": _iso(r.reviewed_at),
        "reviewNotes": r.review_notes,
        "rejectionReason": r.rejection_reason,
        "fulfilledTransferId": _str(r.fulfilled_transfer_id),
        "fulfilledAt": _iso(r.fulfilled_at),
    }


def _page_to_dict(page: Page, key: str, render) -> dict[str, Any]:
    return {
        key: [render(item) for item in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "totalPages": page.total_pages,
        },
    }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class StoreInventoryOperations:
    """One request's worth of store inventory operations.

    Contract:
        ``session`` is bound to a tenant scope (see
        ``stock_services.tenant_context.tenant_session``) and the caller
        commits.  ``actor_id`` is the authenticated user.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        config: StockConfiguration,
        clock: Clock | None = None,
    ):
        require_tenant_id(session, "store inventory operations")
        self._session = session
        self._actor_id = actor_id
        self._config = config
        self._directory = ActorSelector(
            session, config.authorization.super_admin_role_names,
        )
        self._requests = TransferRequestService(session, self._directory, clock=clock)
        self._transfers = DirectTransferService(
            session,
            self._directory,
            clock=clock,
            transfer_prefix=config.numbering.transfer_prefix,
        )
        self._store_requests = StoreRequestService(
            session,
            self._directory,
            clock=clock,
            request_prefix=config.numbering.request_prefix,
            transfer_prefix=config.numbering.transfer_prefix,
        )
        self._transfer_reader = TransferSelector(session)
        self._inventory_reader = InventorySelector(session)

    def _store_or_scope(self, store_id: UUID | None) -> UUID:
        if store_id is not None:
            return store_id
        scope = get_tenant_scope(self._session)
        if scope is None or scope.store_id is None:
            raise InvalidTransferRequestError("storeId is required")
        return scope.store_id

    def _page_limit(self, limit: int | None) -> int:
        listing = self._config.listing
        if limit is None:
            return listing.default_page_size
        return min(limit, listing.max_page_size)

    # -- transfer requests ---------------------------------------------

    def create_transfer_request(
        self, target_store_id: UUID | None, body: Mapping[str, Any],
    ) -> dict[str, str]:
        request_type = _enum(
            TransferRequestType, body.get("type", TransferRequestType.TRANSFER.value), "type",
        )
        request = self._requests.create_request(
            target_store_id=self._store_or_scope(target_store_id),
            batch_id=_uuid(body, "inventoryBatchId"),
            source_store_id=_uuid(body, "sourceStoreId", required=False),
            requested_quantity=body.get("requestedQuantity"),
            reason=body.get("reason") or "",
            actor_id=self._actor_id,
            request_type=request_type,
        )
        return {"requestId": str(request.request_id)}

    def approve_or_reject_request(
        self, request_id: UUID, body: Mapping[str, Any],
    ) -> dict[str, str]:
        decision = _enum(TransferDecision, body.get("decision"), "decision")
        self._requests.decide(
            request_id,
            decision,
            self._actor_id,
            approved_quantity=body.get("approvedQuantity"),
            rejection_reason=body.get("rejectionReason"),
        )
        if decision is TransferDecision.APPROVED:
            return {"message": "Transfer request approved successfully"}
        return {"message": "Transfer request rejected successfully"}

    def confirm_request(self, request_id: UUID) -> dict[str, str]:
        self._requests.confirm(request_id, self._actor_id)
        return {
            "message": "Transfer request confirmed and allocation transfer completed successfully"
        }

    def cancel_request(self, request_id: UUID) -> dict[str, str]:
        self._requests.cancel_request(request_id, self._actor_id)
        return {"message": "Transfer request cancelled successfully"}

    def list_pending_requests(
        self,
        store_id: UUID | None = None,
        status: str | None = None,
        request_type: str | None = None,
        source_store_id: UUID | None = None,
        target_store_id: UUID | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        views = self._transfer_reader.list_transfer_requests(
            self._store_or_scope(store_id),
            status=_enum(TransferRequestStatus, status, "status") if status else None,
            request_type=_enum(TransferRequestType, request_type, "type") if request_type else None,
            source_store_id=source_store_id,
            target_store_id=target_store_id,
        )
        return {"requests": [_request_to_dict(v) for v in views]}

    # -- inventory -------------------------------------------------------

    def get_store_inventory_view(self, store_id: UUID | None = None) -> dict[str, Any]:
        store_id = self._store_or_scope(store_id)
        # Unknown stores are a 404, not an empty view
        StoreSelector(self._session).get_store(store_id)
        views = self._inventory_reader.store_inventory_view(store_id)
        return {"inventories": [_inventory_to_dict(v) for v in views]}

    # -- direct transfers and store requests -----------------------------

    def execute_transfer(self, body: Mapping[str, Any]) -> dict[str, Any]:
        transfer = self._transfers.execute_transfer(
            batch_id=_uuid(body, "inventoryBatchId"),
            from_store_id=_uuid(body, "fromStoreId"),
            to_store_id=_uuid(body, "toStoreId"),
            quantity=body.get("quantity"),
            actor_id=self._actor_id,
            transfer_type=_enum(
                TransferType,
                body.get("transferType", TransferType.DISTRIBUTION.value),
                "transferType",
            ),
            notes=body.get("notes"),
        )
        return _transfer_to_dict(transfer)

    def create_store_request(
        self, requesting_store_id: UUID | None, body: Mapping[str, Any],
    ) -> dict[str, Any]:
        request = self._store_requests.create_request(
            requesting_store_id=self._store_or_scope(requesting_store_id),
            supplying_store_id=_uuid(body, "supplyingStoreId"),
            batch_id=_uuid(body, "inventoryBatchId"),
            quantity=body.get("requestedQuantity"),
            actor_id=self._actor_id,
            priority=_enum(
                StoreRequestPriority,
                body.get("priority", StoreRequestPriority.MEDIUM.value),
                "priority",
            ),
            justification=body.get("justification"),
            expected_date=_date(body, "expectedDate"),
        )
        return _store_request_to_dict(request)

    def approve_store_request(
        self, request_id: UUID, body: Mapping[str, Any],
    ) -> dict[str, Any]:
        request = self._store_requests.approve(
            request_id,
            self._actor_id,
            approved_quantity=body.get("approvedQuantity"),
            notes=body.get("notes"),
        )
        return _store_request_to_dict(request)

    def reject_store_request(
        self, request_id: UUID, body: Mapping[str, Any],
    ) -> dict[str, Any]:
        request = self._store_requests.reject(
            request_id, self._actor_id, body.get("rejectionReason") or "",
        )
        return _store_request_to_dict(request)

    # -- paginated listings ----------------------------------------------

    def list_store_transfers(
        self, store_id: UUID | None = None, page: int = 1, limit: int | None = None,
    ) -> dict[str, Any]:
        result = self._transfer_reader.list_store_transfers(
            self._store_or_scope(store_id), page=page, limit=self._page_limit(limit),
        )
        return _page_to_dict(result, "transfers", _transfer_to_dict)

    def list_store_requests(
        self,
        store_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> dict[str, Any]:
        result = self._transfer_reader.list_store_requests(
            self._store_or_scope(store_id),
            status=_enum(StoreRequestStatus, status, "status") if status else None,
            page=page,
            limit=self._page_limit(limit),
        )
        return _page_to_dict(result, "requests", _store_request_to_dict)
