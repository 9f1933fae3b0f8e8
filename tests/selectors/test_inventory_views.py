"""
Tests for InventorySelector -- per-store views and ledger audits.
"""

from decimal import Decimal
from uuid import uuid4

from stock_kernel.domain.allocation import allocations_to_document, update_store_allocation
from stock_kernel.models.inventory import InventoryBatchModel, InventoryItemModel
from stock_kernel.selectors.inventory_selector import UNKNOWN_STORE_NAME, InventorySelector


def _only_batch(views):
    assert len(views) == 1
    assert len(views[0].batches) == 1
    return views[0], views[0].batches[0]


class TestStoreInventoryView:
    def test_owner_sees_whole_batch(self, world, session):
        view, batch = _only_batch(InventorySelector(session).store_inventory_view(world.tenant.main))
        assert view.inventory_name == "Paracetamol 500mg"
        assert batch.batch_number == "B-001"
        assert batch.total_quantity == 100
        assert batch.allocated_to_store == 100
        assert batch.available_in_store == 100
        assert batch.unit_price == Decimal("2.50")
        assert batch.is_owned_by_store
        assert batch.owner_store_name == "Main Warehouse"
        assert (view.total_allocated, view.total_available) == (100, 100)

    def test_store_without_share_still_lists_item(self, world, session):
        view, batch = _only_batch(InventorySelector(session).store_inventory_view(world.tenant.south))
        assert batch.allocated_to_store == 0
        assert batch.available_in_store == 0
        assert not batch.is_owned_by_store
        assert batch.owner_store_name == "Main Warehouse"
        assert view.total_allocated == 0

    def test_reservations_reduce_availability(self, world, session, direct_transfers, allocation_service):
        direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.north, 60, world.admin,
        )
        allocation_service.reserve(world.tenant.batch_id, world.tenant.north, 15, world.admin)
        session.expire_all()

        _, batch = _only_batch(InventorySelector(session).store_inventory_view(world.tenant.north))
        assert batch.allocated_to_store == 60
        assert batch.reserved_in_store == 15
        assert batch.available_in_store == 45
        assert batch.is_owned_by_store

    def test_owner_unknown_when_largest_holder_is_not_a_store(self, world, session):
        batch = session.get(InventoryBatchModel, world.tenant.batch_id)
        ledger = update_store_allocation(
            batch.allocations, world.tenant.main, 30, 0, "test",
        )
        batch.replace_allocations(update_store_allocation(ledger, uuid4(), 70, 0, "test"))
        session.flush()

        _, view = _only_batch(InventorySelector(session).store_inventory_view(world.tenant.main))
        assert view.owner_store_name == UNKNOWN_STORE_NAME
        assert not view.is_owned_by_store
        assert view.allocated_to_store == 30

    def test_non_uuid_ledger_key_reads_as_unknown_owner(self, world, session):
        batch = session.get(InventoryBatchModel, world.tenant.batch_id)
        ledger = update_store_allocation(
            batch.allocations, world.tenant.main, 20, 0, "test",
        )
        batch.replace_allocations(update_store_allocation(ledger, "legacy-depot-7", 80, 0, "test"))
        session.flush()

        _, view = _only_batch(InventorySelector(session).store_inventory_view(world.tenant.main))
        assert view.owner_store_name == UNKNOWN_STORE_NAME
        assert view.allocated_to_store == 20

    def test_batches_grouped_by_item(self, world, session, allocation_service):
        item = InventoryItemModel(name="Amoxicillin 250mg", created_by_id="test")
        session.add(item)
        session.flush()
        allocation_service.receive_batch(item.id, "A-1", 10, Decimal("4"), world.admin)
        allocation_service.receive_batch(item.id, "A-2", 20, Decimal("4"), world.admin)

        views = InventorySelector(session).store_inventory_view(world.tenant.main)
        assert [v.inventory_name for v in views] == ["Amoxicillin 250mg", "Paracetamol 500mg"]
        assert [b.batch_number for b in views[0].batches] == ["A-1", "A-2"]
        assert views[0].total_allocated == 30

    def test_other_tenant_batches_invisible(self, world, session):
        ledgers = InventorySelector(session).read_all_allocations()
        assert set(ledgers) == {world.tenant.batch_id}


class TestLedgerAudit:
    def test_clean_ledgers(self, session, world):
        assert InventorySelector(session).find_ledger_violations() == []

    def test_aggregate_drift_is_reported(self, world, session, captured_logs):
        batch = session.get(InventoryBatchModel, world.tenant.batch_id)
        batch.remaining_quantity = 90
        session.flush()

        found = InventorySelector(session).find_ledger_violations()
        assert [v.batch_number for v in found] == ["B-001"]
        assert found[0].problems == ("remaining_quantity 90 != allocated total 100",)
        assert any(r["message"] == "ledger_violations_found" for r in captured_logs())

    def test_over_allocation_is_reported(self, world, session):
        batch = session.get(InventoryBatchModel, world.tenant.batch_id)
        ledger = update_store_allocation(batch.allocations, world.tenant.north, 20, 30, "test")
        batch.store_allocations = allocations_to_document(ledger)
        session.flush()

        problems = InventorySelector(session).find_ledger_violations()[0].problems
        assert any("exceeds batch quantity 100" in p for p in problems)
        assert any("reserves 30 of 20 allocated" in p for p in problems)
