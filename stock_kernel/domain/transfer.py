"""
Transfer domain types (``stock_kernel.domain.transfer``).

Responsibility
--------------
Value objects and lifecycle tables for the three movement workflows:
transfer requests (request -> approve/reject -> confirm), direct
transfers (immutable records), and store requests (request -> approve ->
fulfilled by a direct transfer).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects, no I/O.

Invariants enforced
-------------------
* ``TRANSFER_REQUEST_TRANSITIONS`` is the only source of legal status
  changes for a transfer request; terminal states have no outgoing edges.
* ``OPEN_TRANSFER_REQUEST_STATUSES`` (all non-terminal states) define the
  duplicate-request guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID


# =========================================================================
# Transfer requests
# =========================================================================


class TransferRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TransferRequestType(str, Enum):
    """ALLOCATION draws from the main store; TRANSFER names its source."""

    ALLOCATION = "ALLOCATION"
    TRANSFER = "TRANSFER"


class TransferDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TRANSFER_REQUEST_TRANSITIONS: dict[TransferRequestStatus, frozenset[TransferRequestStatus]] = {
    TransferRequestStatus.PENDING: frozenset({
        TransferRequestStatus.APPROVED,
        TransferRequestStatus.PARTIALLY_APPROVED,
        TransferRequestStatus.REJECTED,
        TransferRequestStatus.CANCELLED,
    }),
    TransferRequestStatus.APPROVED: frozenset({
        TransferRequestStatus.COMPLETED,
        TransferRequestStatus.CANCELLED,
    }),
    TransferRequestStatus.PARTIALLY_APPROVED: frozenset({
        TransferRequestStatus.COMPLETED,
        TransferRequestStatus.CANCELLED,
    }),
    TransferRequestStatus.REJECTED: frozenset(),
    TransferRequestStatus.COMPLETED: frozenset(),
    TransferRequestStatus.CANCELLED: frozenset(),
}

TERMINAL_TRANSFER_REQUEST_STATUSES: frozenset[TransferRequestStatus] = frozenset({
    TransferRequestStatus.REJECTED,
    TransferRequestStatus.COMPLETED,
    TransferRequestStatus.CANCELLED,
})

OPEN_TRANSFER_REQUEST_STATUSES: frozenset[TransferRequestStatus] = frozenset(
    set(TransferRequestStatus) - TERMINAL_TRANSFER_REQUEST_STATUSES
)

APPROVED_TRANSFER_REQUEST_STATUSES: frozenset[TransferRequestStatus] = frozenset({
    TransferRequestStatus.APPROVED,
    TransferRequestStatus.PARTIALLY_APPROVED,
})


def is_valid_transition(
    current: TransferRequestStatus, new: TransferRequestStatus,
) -> bool:
    return new in TRANSFER_REQUEST_TRANSITIONS.get(current, frozenset())


def approval_status_for(
    requested_quantity: int, approved_quantity: int,
) -> TransferRequestStatus:
    if approved_quantity == requested_quantity:
        return TransferRequestStatus.APPROVED
    return TransferRequestStatus.PARTIALLY_APPROVED


@dataclass(frozen=True)
class TransferRequest:
    """Immutable snapshot of a transfer request."""

    request_id: UUID
    tenant_id: UUID
    batch_id: UUID
    request_type: TransferRequestType
    source_store_id: UUID
    target_store_id: UUID
    requested_quantity: int
    status: TransferRequestStatus
    reason: str
    requested_by: UUID
    requested_by_name: str
    requested_at: datetime
    approved_quantity: int | None = None
    approved_by: UUID | None = None
    approved_by_name: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    confirmed_by: UUID | None = None
    confirmed_by_name: str | None = None
    confirmed_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_TRANSFER_REQUEST_STATUSES


# =========================================================================
# Direct transfers
# =========================================================================


class TransferType(str, Enum):
    DISTRIBUTION = "DISTRIBUTION"
    REQUEST_FULFILLMENT = "REQUEST_FULFILLMENT"
    EMERGENCY = "EMERGENCY"
    REBALANCING = "REBALANCING"


@dataclass(frozen=True)
class StoreTransfer:
    """A completed, immutable movement between two stores."""

    transfer_id: UUID
    tenant_id: UUID
    transfer_number: str
    batch_id: UUID
    from_store_id: UUID
    to_store_id: UUID
    quantity: int
    transfer_type: TransferType
    initiated_by: UUID
    initiated_by_name: str
    completed_at: datetime
    notes: str | None = None
    store_request_id: UUID | None = None


# =========================================================================
# Store requests
# =========================================================================


class StoreRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    REJECTED = "REJECTED"
    FULFILLED = "FULFILLED"


class StoreRequestPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


@dataclass(frozen=True)
class StoreRequest:
    """Immutable snapshot of a store's request for stock."""

    request_id: UUID
    tenant_id: UUID
    request_number: str
    requesting_store_id: UUID
    supplying_store_id: UUID
    batch_id: UUID
    requested_quantity: int
    priority: StoreRequestPriority
    status: StoreRequestStatus
    requested_by: UUID
    requested_at: datetime
    justification: str | None = None
    expected_date: date | None = None
    approved_quantity: int | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    rejection_reason: str | None = None
    fulfilled_transfer_id: UUID | None = None
    fulfilled_at: datetime | None = None


def document_number(prefix: str, at: datetime, unique: UUID) -> str:
    """``TRF-20240101120000-1a2b3c4d`` style identifier."""
    return f"{prefix}-{at.strftime('%Y%m%d%H%M%S')}-{unique.hex[:8]}"
