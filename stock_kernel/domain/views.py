"""Read-side projections returned by the selectors."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from stock_kernel.domain.transfer import TransferRequest

T = TypeVar("T")


@dataclass(frozen=True)
class TransferRequestView:
    """A transfer request with the names a store screen needs."""

    request: TransferRequest
    batch_number: str
    inventory_id: UUID
    inventory_name: str
    source_store_name: str
    target_store_name: str


@dataclass(frozen=True)
class BatchAllocationView:
    batch_id: UUID
    batch_number: str
    total_quantity: int
    allocated_to_store: int
    reserved_in_store: int
    available_in_store: int
    unit_price: Decimal
    is_owned_by_store: bool
    owner_store_name: str


@dataclass(frozen=True)
class InventoryView:
    """One inventory item as seen by one store, batch by batch."""

    inventory_id: UUID
    inventory_name: str
    batches: tuple[BatchAllocationView, ...]
    total_allocated: int
    total_available: int


@dataclass(frozen=True)
class BatchLedgerViolation:
    batch_id: UUID
    batch_number: str
    problems: tuple[str, ...]


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class FailedInitialAllocation:
    batch_id: UUID
    batch_number: str
    code: str
    message: str


@dataclass(frozen=True)
class InitialAllocationSummary:
    """Outcome of seeding every legacy ledger in one tenant."""

    seeded: int
    skipped: int
    failed: tuple[FailedInitialAllocation, ...] = ()

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def processed(self) -> int:
        return self.seeded + self.skipped + len(self.failed)
