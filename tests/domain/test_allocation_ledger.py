"""
Tests for the allocation ledger pure functions.

Covers:
- update_store_allocation(): copy-on-write, zero entries kept, argument checks
- get_*/has_* lookups: absent data reads as None / zero / empty
- remove_store_allocation(): copy semantics, unknown store is a no-op
- validate_total_allocations(): under-allocation tolerated
- transfer_allocation(): conservation, reserved units never move,
  target entry creation, insufficient source
- with_reservation() / ledger_violations()
- document round trip of the persisted JSON shape
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from stock_kernel.domain.allocation import (
    StoreAllocation,
    allocations_from_document,
    allocations_to_document,
    get_allocated_store_ids,
    get_store_allocation,
    get_total_allocated,
    get_total_reserved,
    has_store_allocation,
    ledger_violations,
    remove_store_allocation,
    transfer_allocation,
    update_store_allocation,
    validate_total_allocations,
    with_reservation,
)
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.exceptions import (
    InsufficientAllocationError,
    InvalidAllocationArgumentError,
    InvalidQuantityError,
)

ACTOR = "user-1"


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc))


@pytest.fixture
def ledger(clock):
    allocations = update_store_allocation({}, "main", 70, 10, ACTOR, clock=clock)
    return update_store_allocation(allocations, "north", 30, 0, ACTOR, clock=clock)


# ---------------------------------------------------------------------------
# update_store_allocation
# ---------------------------------------------------------------------------


class TestUpdateStoreAllocation:
    def test_creates_entry_with_clock_and_actor(self, clock):
        result = update_store_allocation({}, "main", 5, 2, ACTOR, clock=clock)

        entry = result["main"]
        assert entry.allocated == 5
        assert entry.reserved == 2
        assert entry.updated_by == ACTOR
        assert entry.last_updated == clock.now()

    def test_input_map_is_not_mutated(self, ledger, clock):
        before = dict(ledger)
        result = update_store_allocation(ledger, "main", 1, 0, ACTOR, clock=clock)

        assert ledger == before
        assert ledger["main"].allocated == 70
        assert result["main"].allocated == 1
        assert result is not ledger

    def test_none_map_treated_as_empty(self, clock):
        result = update_store_allocation(None, "main", 3, 0, ACTOR, clock=clock)
        assert set(result) == {"main"}

    def test_zero_quantities_keep_the_entry(self, ledger, clock):
        result = update_store_allocation(ledger, "north", 0, 0, ACTOR, clock=clock)
        assert has_store_allocation(result, "north")
        assert result["north"].is_empty

    def test_uuid_store_ids_are_stringified(self, clock):
        store_id = uuid4()
        result = update_store_allocation({}, store_id, 1, 0, ACTOR, clock=clock)
        assert str(store_id) in result
        assert get_store_allocation(result, store_id).allocated == 1

    @pytest.mark.parametrize("store_id", ["", "   ", None])
    def test_empty_store_id_rejected(self, store_id, clock):
        with pytest.raises(InvalidAllocationArgumentError) as exc_info:
            update_store_allocation({}, store_id, 1, 0, ACTOR, clock=clock)
        assert exc_info.value.field == "store_id"

    def test_empty_actor_rejected(self, clock):
        with pytest.raises(InvalidAllocationArgumentError):
            update_store_allocation({}, "main", 1, 0, "", clock=clock)

    @pytest.mark.parametrize("allocated,reserved", [(-1, 0), (0, -1)])
    def test_negative_quantities_rejected(self, allocated, reserved, clock):
        with pytest.raises(InvalidAllocationArgumentError):
            update_store_allocation({}, "main", allocated, reserved, ACTOR, clock=clock)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_totals(self, ledger):
        assert get_total_allocated(ledger) == 100
        assert get_total_reserved(ledger) == 10

    def test_totals_of_empty_and_none(self):
        assert get_total_allocated({}) == 0
        assert get_total_allocated(None) == 0
        assert get_total_reserved(None) == 0

    def test_store_ids(self, ledger):
        assert get_allocated_store_ids(ledger) == frozenset({"main", "north"})
        assert get_allocated_store_ids(None) == frozenset()

    @pytest.mark.parametrize("store_id", [None, "", "unknown"])
    def test_missing_lookups_read_as_absent(self, ledger, store_id):
        assert get_store_allocation(ledger, store_id) is None
        assert not has_store_allocation(ledger, store_id)

    def test_unreserved_never_negative(self):
        entry = StoreAllocation(
            allocated=2, reserved=5,
            last_updated=datetime(2024, 1, 1, tzinfo=timezone.utc),
            updated_by=ACTOR,
        )
        assert entry.unreserved == 0


# ---------------------------------------------------------------------------
# remove_store_allocation / validate_total_allocations
# ---------------------------------------------------------------------------


class TestRemoveAndValidate:
    def test_remove_returns_copy(self, ledger):
        result = remove_store_allocation(ledger, "north")
        assert "north" not in result
        assert "north" in ledger

    def test_remove_unknown_or_empty_id_is_noop(self, ledger):
        assert remove_store_allocation(ledger, "nowhere") == dict(ledger)
        assert remove_store_allocation(ledger, None) == dict(ledger)
        assert remove_store_allocation(None, "main") == {}

    def test_under_allocation_tolerated(self, ledger):
        assert validate_total_allocations(ledger, 150)

    def test_exact_allocation_valid(self, ledger):
        assert validate_total_allocations(ledger, 100)

    def test_over_allocation_invalid(self, ledger):
        assert not validate_total_allocations(ledger, 99)


# ---------------------------------------------------------------------------
# transfer_allocation
# ---------------------------------------------------------------------------


class TestTransferAllocation:
    def test_moves_units_and_conserves_total(self, ledger, clock):
        result = transfer_allocation(ledger, "main", "north", 25, ACTOR, clock=clock)

        assert result["main"].allocated == 45
        assert result["north"].allocated == 55
        assert get_total_allocated(result) == get_total_allocated(ledger)

    def test_reservations_stay_put(self, ledger, clock):
        result = transfer_allocation(ledger, "main", "north", 25, ACTOR, clock=clock)
        assert result["main"].reserved == 10
        assert result["north"].reserved == 0

    def test_creates_target_entry(self, ledger, clock):
        result = transfer_allocation(ledger, "main", "south", 5, ACTOR, clock=clock)
        assert result["south"].allocated == 5
        assert result["south"].reserved == 0

    def test_both_sides_share_one_timestamp(self, ledger, clock):
        clock.advance(60)
        result = transfer_allocation(ledger, "main", "north", 1, ACTOR, clock=clock)
        assert result["main"].last_updated == result["north"].last_updated == clock.now()

    def test_only_unreserved_units_move(self, ledger, clock):
        # main holds 70 with 10 reserved
        transfer_allocation(ledger, "main", "north", 60, ACTOR, clock=clock)
        with pytest.raises(InsufficientAllocationError) as exc_info:
            transfer_allocation(ledger, "main", "north", 61, ACTOR, clock=clock)
        assert exc_info.value.available == 60
        assert exc_info.value.requested == 61

    def test_unknown_source_has_nothing(self, ledger, clock):
        with pytest.raises(InsufficientAllocationError):
            transfer_allocation(ledger, "south", "north", 1, ACTOR, clock=clock)

    def test_input_untouched_on_failure(self, ledger, clock):
        before = allocations_to_document(ledger)
        with pytest.raises(InsufficientAllocationError):
            transfer_allocation(ledger, "north", "main", 31, ACTOR, clock=clock)
        assert allocations_to_document(ledger) == before

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, True])
    def test_non_positive_or_non_integer_quantity(self, ledger, quantity, clock):
        with pytest.raises(InvalidQuantityError):
            transfer_allocation(ledger, "main", "north", quantity, ACTOR, clock=clock)

    def test_same_store_rejected(self, ledger, clock):
        with pytest.raises(InvalidAllocationArgumentError):
            transfer_allocation(ledger, "main", "main", 1, ACTOR, clock=clock)

    def test_batch_id_reported_on_failure(self, ledger, clock):
        batch_id = uuid4()
        with pytest.raises(InsufficientAllocationError) as exc_info:
            transfer_allocation(
                ledger, "north", "main", 999, ACTOR, batch_id=batch_id, clock=clock,
            )
        assert exc_info.value.batch_id == str(batch_id)


# ---------------------------------------------------------------------------
# Reservations and violations
# ---------------------------------------------------------------------------


class TestReservations:
    def test_with_reservation_sets_reserved(self, ledger, clock):
        result = with_reservation(ledger, "north", 12, ACTOR, clock=clock)
        assert result["north"].reserved == 12
        assert result["north"].allocated == 30

    def test_reservation_above_allocation_rejected(self, ledger, clock):
        with pytest.raises(InsufficientAllocationError):
            with_reservation(ledger, "north", 31, ACTOR, clock=clock)

    def test_violations_empty_for_valid_ledger(self, ledger):
        assert ledger_violations(ledger, 100) == ()

    def test_violations_report_over_allocation_and_over_reservation(self):
        broken = {
            "main": StoreAllocation(
                allocated=5, reserved=9,
                last_updated=datetime(2024, 1, 1, tzinfo=timezone.utc),
                updated_by=ACTOR,
            ),
        }
        problems = ledger_violations(broken, 4)
        assert len(problems) == 2
        assert "exceeds batch quantity 4" in problems[0]
        assert "reserves 9 of 5" in problems[1]


# ---------------------------------------------------------------------------
# Persisted shape
# ---------------------------------------------------------------------------


class TestDocumentShape:
    def test_document_keys_are_camel_case(self, ledger):
        document = allocations_to_document(ledger)
        assert set(document["main"]) == {"allocated", "reserved", "lastUpdated", "updatedBy"}

    def test_document_round_trip(self, ledger):
        assert allocations_from_document(allocations_to_document(ledger)) == dict(ledger)

    def test_missing_quantities_default_to_zero(self):
        decoded = allocations_from_document(
            {"main": {"lastUpdated": "2024-01-01T00:00:00+00:00"}}
        )
        assert decoded["main"].allocated == 0
        assert decoded["main"].reserved == 0

    def test_empty_document(self):
        assert allocations_from_document(None) == {}
        assert allocations_to_document(None) == {}
