"""
Tests for the store hierarchy rules.

Covers:
- can_transfer(): the full MAIN / REGIONAL / SUB_REGIONAL push table,
  same-store and cross-tenant refusals, reasons on refusal
- can_request(): parent or MAIN only
- validate_store_placement(): legal parents per classification
"""

from uuid import uuid4

import pytest

from stock_kernel.domain.hierarchy import (
    StoreClassification,
    StoreNode,
    can_request,
    can_transfer,
    validate_store_placement,
)

TENANT = uuid4()


def node(name, classification, parent=None, tenant=TENANT):
    return StoreNode(
        store_id=uuid4(),
        tenant_id=tenant,
        name=name,
        classification=classification,
        parent_id=parent.store_id if parent is not None else None,
    )


MAIN = node("main", StoreClassification.MAIN)
NORTH = node("north", StoreClassification.REGIONAL, MAIN)
SOUTH = node("south", StoreClassification.REGIONAL, MAIN)
NORTH_A = node("north_a", StoreClassification.SUB_REGIONAL, NORTH)
NORTH_B = node("north_b", StoreClassification.SUB_REGIONAL, NORTH)
SOUTH_A = node("south_a", StoreClassification.SUB_REGIONAL, SOUTH)


# ---------------------------------------------------------------------------
# can_transfer
# ---------------------------------------------------------------------------


class TestCanTransfer:
    @pytest.mark.parametrize(
        "source,target",
        [
            (MAIN, NORTH),
            (MAIN, SOUTH),
            (MAIN, NORTH_A),
            (MAIN, SOUTH_A),
            (NORTH, NORTH_A),
            (NORTH, NORTH_B),
            (NORTH_A, NORTH_B),
            (NORTH_B, NORTH_A),
        ],
        ids=lambda n: n.name,
    )
    def test_allowed(self, source, target):
        decision = can_transfer(source, target)
        assert decision.allowed
        assert decision.reason is None

    @pytest.mark.parametrize(
        "source,target",
        [
            (NORTH, SOUTH),
            (NORTH, MAIN),
            (NORTH, SOUTH_A),
            (NORTH_A, SOUTH_A),
            (NORTH_A, NORTH),
            (NORTH_A, MAIN),
            (SOUTH_A, NORTH_A),
        ],
        ids=lambda n: n.name,
    )
    def test_refused(self, source, target):
        decision = can_transfer(source, target)
        assert not decision.allowed
        assert decision.reason

    @pytest.mark.parametrize("store", [MAIN, NORTH, NORTH_A], ids=lambda n: n.name)
    def test_same_store_refused(self, store):
        decision = can_transfer(store, store)
        assert not decision.allowed
        assert "same store" in decision.reason

    def test_cross_tenant_refused_even_from_main(self):
        foreign = node("foreign", StoreClassification.REGIONAL, tenant=uuid4())
        decision = can_transfer(MAIN, foreign)
        assert not decision.allowed
        assert "different tenants" in decision.reason


# ---------------------------------------------------------------------------
# can_request
# ---------------------------------------------------------------------------


class TestCanRequest:
    @pytest.mark.parametrize(
        "requester,supplier",
        [
            (NORTH_A, NORTH),
            (NORTH_A, MAIN),
            (NORTH, MAIN),
            (SOUTH_A, SOUTH),
        ],
        ids=lambda n: n.name,
    )
    def test_parent_or_main_allowed(self, requester, supplier):
        assert can_request(requester, supplier)

    @pytest.mark.parametrize(
        "requester,supplier",
        [
            (NORTH_A, NORTH_B),
            (NORTH_A, SOUTH),
            (NORTH, SOUTH),
            (MAIN, NORTH),
            (MAIN, MAIN),
        ],
        ids=lambda n: n.name,
    )
    def test_others_refused(self, requester, supplier):
        assert not can_request(requester, supplier)

    def test_cross_tenant_main_refused(self):
        foreign_main = node("foreign-main", StoreClassification.MAIN, tenant=uuid4())
        assert not can_request(NORTH_A, foreign_main)


# ---------------------------------------------------------------------------
# validate_store_placement
# ---------------------------------------------------------------------------


class TestStorePlacement:
    def test_main_without_parent(self):
        assert validate_store_placement(StoreClassification.MAIN, None, None).allowed

    def test_main_with_parent_refused(self):
        assert not validate_store_placement(StoreClassification.MAIN, MAIN, None).allowed

    def test_regional_under_main(self):
        assert validate_store_placement(StoreClassification.REGIONAL, MAIN, MAIN).allowed

    def test_regional_under_stale_main_refused(self):
        other_main = node("retired-main", StoreClassification.MAIN)
        decision = validate_store_placement(StoreClassification.REGIONAL, other_main, MAIN)
        assert not decision.allowed

    @pytest.mark.parametrize("parent", [None, NORTH, NORTH_A], ids=str)
    def test_regional_elsewhere_refused(self, parent):
        assert not validate_store_placement(StoreClassification.REGIONAL, parent, MAIN).allowed

    def test_sub_regional_under_regional(self):
        assert validate_store_placement(StoreClassification.SUB_REGIONAL, NORTH, MAIN).allowed

    @pytest.mark.parametrize("parent", [None, MAIN, NORTH_A], ids=str)
    def test_sub_regional_elsewhere_refused(self, parent):
        decision = validate_store_placement(StoreClassification.SUB_REGIONAL, parent, MAIN)
        assert not decision.allowed
        assert decision.reason
