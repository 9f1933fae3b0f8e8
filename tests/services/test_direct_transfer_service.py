"""
Tests for DirectTransferService -- single-step authorized transfers.
"""

from uuid import uuid4

import pytest

from stock_kernel.domain.transfer import TransferType
from stock_kernel.exceptions import (
    InsufficientAllocationError,
    InvalidQuantityError,
    InventoryBatchNotFoundError,
    StoreAccessDeniedError,
    StoreHierarchyViolationError,
    StoreNotFoundError,
)
from stock_kernel.models.store_transfer import StoreTransferModel


@pytest.fixture
def stocked_north(world, direct_transfers):
    """Admin pushes 40 units from the main store to North Hub."""
    direct_transfers.execute_transfer(
        world.tenant.batch_id, world.tenant.main, world.tenant.north, 40, world.admin,
    )
    return world


class TestExecuteTransfer:
    def test_regional_manager_pushes_to_own_shop(self, stocked_north, direct_transfers, ledger_of):
        world = stocked_north
        transfer = direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.north, world.tenant.north_a, 15, world.north_mgr,
        )
        assert transfer.quantity == 15
        assert transfer.transfer_type is TransferType.DISTRIBUTION
        assert transfer.initiated_by == world.north_mgr
        assert transfer.initiated_by_name == "Nils North"
        assert ledger_of(world.tenant.batch_id) == {
            world.tenant.main: 60,
            world.tenant.north: 25,
            world.tenant.north_a: 15,
        }

    def test_transfer_number_format(self, world, direct_transfers):
        transfer = direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.south, 5, world.main_mgr,
        )
        assert transfer.transfer_number.startswith("TRF-20240601090000-")
        assert transfer.transfer_number.endswith(transfer.transfer_id.hex[:8])

    def test_record_is_persisted(self, world, session, direct_transfers):
        transfer = direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.south, 5, world.admin,
            transfer_type=TransferType.REBALANCING, notes="season end",
        )
        session.expire_all()
        row = session.get(StoreTransferModel, transfer.transfer_id)
        assert row.tenant_id == world.tenant.tenant_id
        assert row.transfer_type == "REBALANCING"
        assert row.notes == "season end"
        assert row.store_request_id is None

    def test_siblings_may_share(self, world, direct_transfers, ledger_of):
        direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.north_b, 20, world.admin,
        )
        direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.north_b, world.tenant.north_a, 5, world.north_b_mgr,
        )
        ledger = ledger_of(world.tenant.batch_id)
        assert ledger[world.tenant.north_b] == 15
        assert ledger[world.tenant.north_a] == 5

    @pytest.mark.parametrize(
        "source,target",
        [
            ("north_a", "south_a"),
            ("north", "south"),
            ("north", "south_a"),
            ("north_a", "north"),
            ("north", "main"),
        ],
    )
    def test_hierarchy_refusals(self, stocked_north, direct_transfers, source, target):
        world = stocked_north
        with pytest.raises(StoreHierarchyViolationError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id,
                getattr(world.tenant, source),
                getattr(world.tenant, target),
                1,
                world.admin,
            )

    def test_hierarchy_checked_before_authorization(self, stocked_north, direct_transfers):
        world = stocked_north
        with pytest.raises(StoreHierarchyViolationError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.north, world.tenant.south, 1, world.viewer,
            )

    def test_clerk_lacks_transfer_permission(self, world, direct_transfers):
        direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.north_a, 10, world.admin,
        )
        with pytest.raises(StoreAccessDeniedError) as exc_info:
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.north_a, world.tenant.north_b, 5,
                world.north_a_clerk,
            )
        assert "lacks" in exc_info.value.reason

    def test_manager_of_another_store_denied(self, stocked_north, direct_transfers):
        world = stocked_north
        with pytest.raises(StoreAccessDeniedError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.north, world.tenant.north_a, 5, world.main_mgr,
            )

    def test_other_tenant_admin_denied(self, world, direct_transfers):
        with pytest.raises(StoreAccessDeniedError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.main, world.tenant.north, 5, world.outsider,
            )

    def test_insufficient_allocation(self, stocked_north, direct_transfers, ledger_of):
        world = stocked_north
        with pytest.raises(InsufficientAllocationError) as exc_info:
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.north, world.tenant.north_a, 41, world.north_mgr,
            )
        assert exc_info.value.available == 40
        assert ledger_of(world.tenant.batch_id)[world.tenant.north] == 40

    def test_reserved_units_do_not_move(self, stocked_north, direct_transfers, allocation_service):
        world = stocked_north
        allocation_service.reserve(world.tenant.batch_id, world.tenant.north, 30, world.admin)
        with pytest.raises(InsufficientAllocationError) as exc_info:
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.north, world.tenant.north_a, 11, world.north_mgr,
            )
        assert exc_info.value.available == 10

    def test_store_without_entry_has_nothing(self, world, direct_transfers):
        with pytest.raises(InsufficientAllocationError) as exc_info:
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.south, world.tenant.south_a, 1, world.admin,
            )
        assert exc_info.value.available == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_invalid_quantity(self, world, direct_transfers, quantity):
        with pytest.raises(InvalidQuantityError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.main, world.tenant.north, quantity, world.admin,
            )

    def test_unknown_store(self, world, direct_transfers):
        with pytest.raises(StoreNotFoundError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.main, uuid4(), 1, world.admin,
            )

    def test_other_tenant_store_is_not_found(self, world, direct_transfers):
        with pytest.raises(StoreNotFoundError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.main, world.other.north, 1, world.admin,
            )

    def test_unknown_batch(self, world, direct_transfers):
        with pytest.raises(InventoryBatchNotFoundError):
            direct_transfers.execute_transfer(
                uuid4(), world.tenant.main, world.tenant.north, 1, world.admin,
            )

    def test_transfer_is_logged(self, world, direct_transfers, captured_logs):
        transfer = direct_transfers.execute_transfer(
            world.tenant.batch_id, world.tenant.main, world.tenant.north, 3, world.admin,
        )
        executed = [r for r in captured_logs() if r["message"] == "direct_transfer_executed"]
        assert len(executed) == 1
        assert executed[0]["transfer_number"] == transfer.transfer_number
        assert executed[0]["quantity"] == 3

    def test_denial_is_logged(self, world, direct_transfers, captured_logs):
        with pytest.raises(StoreAccessDeniedError):
            direct_transfers.execute_transfer(
                world.tenant.batch_id, world.tenant.main, world.tenant.north, 3, world.viewer,
            )
        denied = [r for r in captured_logs() if r["message"] == "store_access_denied"]
        assert denied[0]["level"] == "WARNING"
        assert denied[0]["store_id"] == str(world.tenant.main)
