"""
ORM-Level Immutability Enforcement for transfer records.

===============================================================================
WHY THIS EXISTS
===============================================================================

A direct transfer mutates the allocation ledger in one step, without the
request/approval trail.  Its StoreTransfer record is the only audit
counterpart of that mutation, so the record is append-only: once inserted it
can be neither updated nor deleted through the ORM.

    session.flush()
         |
         v
    [before_update event] --> _check_store_transfer_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_store_transfer_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

    session.execute(update(StoreTransferModel) / delete(StoreTransferModel))
         |
         v
    [do_orm_execute] --> _check_store_transfer_statement() --> ImmutabilityViolationError

Bulk ORM statements never reach the mapper events, hence the session-level
listener.  Raw SQL is covered on PostgreSQL by the triggers in db/triggers.py.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable          | Why
----------------|-------------------------|----------------------------------
StoreTransfer   | ALWAYS (from creation)  | Audit record of a ledger movement

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _refuse(entity_id: str, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StoreTransfer",
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type="StoreTransfer", entity_id=entity_id, reason=reason,
    )


def _check_store_transfer_update(mapper, connection, target):
    """Prevent any updates to StoreTransfer records."""
    raise _refuse(
        str(target.id), "UPDATE", "Transfer records are immutable and cannot be modified",
    )


def _check_store_transfer_delete(mapper, connection, target):
    """Prevent deletion of StoreTransfer records."""
    raise _refuse(str(target.id), "DELETE", "Transfer records cannot be deleted")


def _check_store_transfer_statement(orm_execute_state: ORMExecuteState) -> None:
    """Refuse ORM-enabled UPDATE and DELETE statements against StoreTransfer."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    from stock_kernel.models.store_transfer import StoreTransferModel

    if any(m.class_ is StoreTransferModel for m in orm_execute_state.all_mappers):
        if orm_execute_state.is_update:
            raise _refuse(
                "*", "BULK_UPDATE", "Transfer records are immutable and cannot be modified",
            )
        raise _refuse("*", "BULK_DELETE", "Transfer records cannot be deleted")


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after all models are imported but before any database operations
    begin.
    """
    from stock_kernel.models.store_transfer import StoreTransferModel

    if not event.contains(StoreTransferModel, "before_update", _check_store_transfer_update):
        event.listen(StoreTransferModel, "before_update", _check_store_transfer_update)
    if not event.contains(StoreTransferModel, "before_delete", _check_store_transfer_delete):
        event.listen(StoreTransferModel, "before_delete", _check_store_transfer_delete)
    if not event.contains(Session, "do_orm_execute", _check_store_transfer_statement):
        event.listen(Session, "do_orm_execute", _check_store_transfer_statement)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate immutability on
    purpose.
    """
    from stock_kernel.models.store_transfer import StoreTransferModel

    _safe_remove_listener(StoreTransferModel, "before_update", _check_store_transfer_update)
    _safe_remove_listener(StoreTransferModel, "before_delete", _check_store_transfer_delete)
    _safe_remove_listener(Session, "do_orm_execute", _check_store_transfer_statement)
