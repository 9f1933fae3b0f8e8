"""
StoreTransfer records are append-only: ORM updates and deletes are refused,
whether they come from a flush or from a bulk statement.  On PostgreSQL the
database triggers refuse raw SQL too.
"""

import pytest
from sqlalchemy import delete, text, update
from sqlalchemy.exc import DBAPIError

from stock_kernel.db.engine import is_postgres
from stock_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from stock_kernel.db.triggers import triggers_installed
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.inventory import InventoryItemModel
from stock_kernel.models.store_transfer import StoreTransferModel


@pytest.fixture
def transfer_record(world, session, direct_transfers):
    transfer = direct_transfers.execute_transfer(
        world.tenant.batch_id, world.tenant.main, world.tenant.north, 10, world.admin,
    )
    return session.get(StoreTransferModel, transfer.transfer_id)


class TestStoreTransferImmutability:
    def test_update_refused(self, session, transfer_record):
        transfer_record.notes = "edited after the fact"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert exc_info.value.entity_type == "StoreTransfer"

    def test_delete_refused(self, session, transfer_record):
        session.delete(transfer_record)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, session, transfer_record, captured_logs):
        transfer_record.quantity = 99
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"

    def test_registration_is_idempotent(self, engine):
        register_immutability_listeners()
        register_immutability_listeners()

    def test_unregistered_listeners_allow_update(self, session, transfer_record):
        if is_postgres():
            pytest.skip("the database triggers refuse the write as well")
        unregister_immutability_listeners()
        try:
            transfer_record.notes = "maintenance fix"
            session.flush()
        finally:
            register_immutability_listeners()
        assert transfer_record.notes == "maintenance fix"


class TestBulkStatements:
    def test_bulk_update_refused(self, session, transfer_record, captured_logs):
        transfer_id = transfer_record.id
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.execute(
                update(StoreTransferModel)
                .where(StoreTransferModel.id == transfer_id)
                .values(quantity=999)
            )
        assert exc_info.value.entity_type == "StoreTransfer"

        session.expire_all()
        assert session.get(StoreTransferModel, transfer_id).quantity == 10
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "BULK_UPDATE"

    def test_bulk_delete_refused(self, session, transfer_record):
        transfer_id = transfer_record.id
        with pytest.raises(ImmutabilityViolationError):
            session.execute(
                delete(StoreTransferModel).where(StoreTransferModel.id == transfer_id)
            )

        session.expire_all()
        assert session.get(StoreTransferModel, transfer_id) is not None

    def test_other_entities_still_bulk_updatable(self, world, session, transfer_record):
        session.execute(
            update(InventoryItemModel)
            .where(InventoryItemModel.id == world.tenant.item_id)
            .values(name="Paracetamol 500mg tablets")
            .execution_options(synchronize_session=False)
        )
        session.expire_all()
        assert session.get(InventoryItemModel, world.tenant.item_id).name == (
            "Paracetamol 500mg tablets"
        )


@pytest.mark.postgres
class TestDatabaseTriggers:
    @pytest.fixture(autouse=True)
    def _require_postgres(self, engine):
        if not is_postgres():
            pytest.skip("requires PostgreSQL triggers")

    def test_triggers_installed_by_create_tables(self, engine):
        assert triggers_installed(engine)

    def test_raw_update_refused(self, session, transfer_record):
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("UPDATE store_transfers SET quantity = 999 WHERE transfer_number = :number"),
                {"number": transfer_record.transfer_number},
            )

    def test_raw_delete_refused(self, session, transfer_record):
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("DELETE FROM store_transfers WHERE transfer_number = :number"),
                {"number": transfer_record.transfer_number},
            )
