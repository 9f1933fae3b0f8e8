"""
Allocation Ledger (``stock_kernel.domain.allocation``).

Responsibility
--------------
Pure functions over a batch's store allocation map: store id ->
``StoreAllocation(allocated, reserved, last_updated, updated_by)``.  Every
write returns a new map; the input map and its entries are never mutated.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``, ``models/``,
``services/`` or outer layers.  Time comes from an injected ``Clock``.

Invariants enforced
-------------------
* Copy-on-write: callers holding the previous map observe no change.
* Non-negative quantities and non-empty store/actor ids on every write.
* ``transfer_allocation`` never moves reserved units and never creates or
  destroys stock: the allocated total is identical before and after.

Failure modes
-------------
* ``InvalidAllocationArgumentError`` for empty ids or negative quantities.
* ``InsufficientAllocationError`` when a transfer source holds too little.
* Lookups (``get_*``, ``has_*``) never raise; absent data reads as
  ``None``, zero or empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import (
    InsufficientAllocationError,
    InvalidAllocationArgumentError,
    InvalidQuantityError,
)

AllocationMap = Mapping[str, "StoreAllocation"]


@dataclass(frozen=True)
class StoreAllocation:
    """One store's share of a batch."""

    allocated: int
    reserved: int
    last_updated: datetime
    updated_by: str

    @property
    def unreserved(self) -> int:
        return max(0, self.allocated - self.reserved)

    @property
    def is_empty(self) -> bool:
        return self.allocated == 0 and self.reserved == 0

    def to_document(self) -> dict[str, Any]:
        """Persisted JSON shape of one ledger entry."""
        return {
            "allocated": self.allocated,
            "reserved": self.reserved,
            "lastUpdated": self.last_updated.isoformat(),
            "updatedBy": self.updated_by,
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> StoreAllocation:
        last_updated = data["lastUpdated"]
        if isinstance(last_updated, str):
            last_updated = datetime.fromisoformat(last_updated)
        return cls(
            allocated=int(data.get("allocated", 0)),
            reserved=int(data.get("reserved", 0)),
            last_updated=last_updated,
            updated_by=str(data.get("updatedBy", "")),
        )


def allocations_from_document(
    document: Mapping[str, Any] | None,
) -> dict[str, StoreAllocation]:
    if not document:
        return {}
    return {
        store_id: StoreAllocation.from_document(entry)
        for store_id, entry in document.items()
    }


def allocations_to_document(
    allocations: AllocationMap | None,
) -> dict[str, dict[str, Any]]:
    if not allocations:
        return {}
    return {
        store_id: entry.to_document()
        for store_id, entry in sorted(allocations.items())
    }


# =========================================================================
# Argument checks
# =========================================================================


def _require_id(field: str, value: str | UUID | None) -> str:
    if value is None or not str(value).strip():
        raise InvalidAllocationArgumentError(field, value, "must not be empty")
    return str(value)


def _require_non_negative(field: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAllocationArgumentError(field, value, "must be an integer")
    if value < 0:
        raise InvalidAllocationArgumentError(field, value, "must not be negative")
    return value


# =========================================================================
# Ledger operations
# =========================================================================


def update_store_allocation(
    allocations: AllocationMap | None,
    store_id: str | UUID,
    allocated: int,
    reserved: int,
    actor_id: str | UUID,
    *,
    clock: Clock | None = None,
) -> dict[str, StoreAllocation]:
    """Return a copy of ``allocations`` with ``store_id`` set to the given quantities.

    Zero quantities are valid and keep the entry in place.
    """
    store_key = _require_id("store_id", store_id)
    actor = _require_id("actor_id", actor_id)
    _require_non_negative("allocated", allocated)
    _require_non_negative("reserved", reserved)

    updated = dict(allocations or {})
    updated[store_key] = StoreAllocation(
        allocated=allocated,
        reserved=reserved,
        last_updated=(clock or SystemClock()).now(),
        updated_by=actor,
    )
    return updated


def get_store_allocation(
    allocations: AllocationMap | None,
    store_id: str | UUID | None,
) -> StoreAllocation | None:
    if not allocations or store_id is None or not str(store_id):
        return None
    return allocations.get(str(store_id))


def get_total_allocated(allocations: AllocationMap | None) -> int:
    if not allocations:
        return 0
    return sum(entry.allocated for entry in allocations.values())


def get_total_reserved(allocations: AllocationMap | None) -> int:
    if not allocations:
        return 0
    return sum(entry.reserved for entry in allocations.values())


def get_allocated_store_ids(allocations: AllocationMap | None) -> frozenset[str]:
    if not allocations:
        return frozenset()
    return frozenset(allocations.keys())


def has_store_allocation(
    allocations: AllocationMap | None,
    store_id: str | UUID | None,
) -> bool:
    return get_store_allocation(allocations, store_id) is not None


def remove_store_allocation(
    allocations: AllocationMap | None,
    store_id: str | UUID | None,
) -> dict[str, StoreAllocation]:
    """Return a copy of ``allocations`` without ``store_id``."""
    if allocations is None:
        return {}
    updated = dict(allocations)
    if store_id is None or not str(store_id):
        return updated
    updated.pop(str(store_id), None)
    return updated


def validate_total_allocations(
    allocations: AllocationMap | None,
    batch_total_quantity: int,
) -> bool:
    """Under-allocation is tolerated (e.g. mid-migration); over-allocation is not."""
    return get_total_allocated(allocations) <= batch_total_quantity


def transfer_allocation(
    allocations: AllocationMap | None,
    source_store_id: str | UUID,
    target_store_id: str | UUID,
    quantity: int,
    actor_id: str | UUID,
    *,
    batch_id: str | UUID | None = None,
    clock: Clock | None = None,
) -> dict[str, StoreAllocation]:
    """Move ``quantity`` allocated units from source to target.

    Both stores keep their reservations.  The target entry is created when
    absent.  Only unreserved units of the source can move.
    """
    source_key = _require_id("source_store_id", source_store_id)
    target_key = _require_id("target_store_id", target_store_id)
    if source_key == target_key:
        raise InvalidAllocationArgumentError(
            "target_store_id", target_key, "must differ from the source store",
        )
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantityError("quantity", quantity)

    source = get_store_allocation(allocations, source_key)
    available = source.unreserved if source is not None else 0
    if source is None or available < quantity:
        raise InsufficientAllocationError(
            source_key,
            str(batch_id) if batch_id is not None else None,
            quantity,
            available,
        )

    # One timestamp for both sides of the movement
    stamp_clock = _FrozenClock((clock or SystemClock()).now())
    target = get_store_allocation(allocations, target_key)
    debited = update_store_allocation(
        allocations,
        source_key,
        source.allocated - quantity,
        source.reserved,
        actor_id,
        clock=stamp_clock,
    )
    return update_store_allocation(
        debited,
        target_key,
        (target.allocated if target is not None else 0) + quantity,
        target.reserved if target is not None else 0,
        actor_id,
        clock=stamp_clock,
    )


def with_reservation(
    allocations: AllocationMap | None,
    store_id: str | UUID,
    reserved: int,
    actor_id: str | UUID,
    *,
    batch_id: str | UUID | None = None,
    clock: Clock | None = None,
) -> dict[str, StoreAllocation]:
    """Set a store's reservation, which may not exceed its allocation."""
    _require_non_negative("reserved", reserved)
    current = get_store_allocation(allocations, store_id)
    allocated = current.allocated if current is not None else 0
    if reserved > allocated:
        raise InsufficientAllocationError(
            str(store_id),
            str(batch_id) if batch_id is not None else None,
            reserved,
            allocated,
        )
    return update_store_allocation(
        allocations, store_id, allocated, reserved, actor_id, clock=clock,
    )


def ledger_violations(
    allocations: AllocationMap | None,
    number_of_stock: int,
) -> tuple[str, ...]:
    """Describe every way ``allocations`` breaks the batch invariants."""
    problems: list[str] = []
    if not validate_total_allocations(allocations, number_of_stock):
        problems.append(
            f"allocated total {get_total_allocated(allocations)} exceeds "
            f"batch quantity {number_of_stock}"
        )
    for store_id, entry in sorted((allocations or {}).items()):
        if entry.reserved > entry.allocated:
            problems.append(
                f"store {store_id} reserves {entry.reserved} of "
                f"{entry.allocated} allocated"
            )
    return tuple(problems)


class _FrozenClock(Clock):
    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at
