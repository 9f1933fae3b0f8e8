"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, migration jobs, tests) must react to failures by
type, never by parsing messages.  Every exception here carries:

  1. A ``code`` class attribute (machine-readable, API-safe)
  2. A ``kind`` class attribute (one of six ``ErrorKind`` values that the
     outer layer maps to a transport status)
  3. Structured attributes (ids, quantities, states), not just a message

Example:
    try:
        service.confirm(request_id, actor_id)
    except InvalidTransferRequestStateError as e:
        api_response(code=e.code, current=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- InvalidArgumentError                 [INVALID_ARGUMENT]
    |   +-- InvalidAllocationArgumentError
    |   +-- InvalidQuantityError
    |   +-- InvalidTransferRequestError
    |   +-- InvalidStorePlacementError
    |
    +-- NotFoundError                        [NOT_FOUND]
    |   +-- TenantNotFoundError
    |   +-- StoreNotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- InventoryBatchNotFoundError
    |   +-- TransferRequestNotFoundError
    |   +-- StoreRequestNotFoundError
    |   +-- UserNotFoundError
    |   +-- RoleNotFoundError
    |   +-- StoreAccessNotFoundError
    |
    +-- ConflictError                        [CONFLICT]
    |   +-- DuplicateTransferRequestError
    |   +-- MainStoreAlreadyExistsError
    |   +-- DuplicateStoreAccessError
    |
    +-- InvalidStateError                    [INVALID_STATE]
    |   +-- InsufficientAllocationError
    |   +-- InvalidApprovedQuantityError
    |   +-- InvalidTransferRequestStateError
    |   +-- InvalidStoreRequestStateError
    |   +-- StoreHierarchyViolationError
    |   +-- AllocationInvariantError
    |   +-- StoreInUseError
    |   +-- ConcurrencyError
    |   |   +-- OptimisticLockError
    |   +-- ImmutabilityError
    |       +-- ImmutabilityViolationError
    |
    +-- PermissionDeniedError                [PERMISSION_DENIED]
    |   +-- StoreAccessDeniedError
    |   +-- CrossTenantAccessError
    |
    +-- TenantContextError                   [PRECONDITION_FAILED]
        +-- TenantContextRequiredError
        +-- TenantInactiveError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind              | Code                            | When Raised
------------------|---------------------------------|------------------------------------
INVALID_ARGUMENT  | INVALID_ALLOCATION_ARGUMENT     | Empty store/actor id, negative qty
                  | INVALID_QUANTITY                | Quantity below 1 or not an integer
                  | INVALID_TRANSFER_REQUEST        | Malformed request input
                  | INVALID_STORE_PLACEMENT         | Store breaks the 3-level tree
------------------|---------------------------------|------------------------------------
NOT_FOUND         | TENANT_NOT_FOUND                | Tenant id unknown
                  | STORE_NOT_FOUND                 | Store unknown in tenant scope
                  | INVENTORY_ITEM_NOT_FOUND        | Inventory item unknown
                  | INVENTORY_BATCH_NOT_FOUND       | Batch unknown in tenant scope
                  | TRANSFER_REQUEST_NOT_FOUND      | Request id unknown
                  | STORE_REQUEST_NOT_FOUND         | Store request id unknown
                  | ROLE_NOT_FOUND                  | Role id unknown
                  | STORE_ACCESS_NOT_FOUND          | No active access to revoke
------------------|---------------------------------|------------------------------------
CONFLICT          | TRANSFER_REQUEST_CONFLICT       | Open request exists for the triple
                  | MAIN_STORE_EXISTS               | Second active MAIN store
                  | STORE_ACCESS_EXISTS             | Active access already assigned
------------------|---------------------------------|------------------------------------
INVALID_STATE     | INSUFFICIENT_STORE_ALLOCATION   | Source store holds too little
                  | INVALID_APPROVED_QUANTITY       | Approved qty outside bounds
                  | INVALID_TRANSFER_REQUEST_STATE  | Wrong status for the operation
                  | INVALID_STORE_REQUEST_STATE     | Wrong status for the operation
                  | STORE_HIERARCHY_VIOLATION       | Store pair not permitted
                  | ALLOCATION_INVARIANT_VIOLATION  | Ledger would break batch totals
                  | STORE_IN_USE                    | Store still holds stock/children
                  | OPTIMISTIC_LOCK_CONFLICT        | Concurrent modification detected
                  | IMMUTABILITY_VIOLATION          | Transfer record update/delete
------------------|---------------------------------|------------------------------------
PERMISSION_DENIED | STORE_ACCESS_DENIED             | Actor lacks store authority
                  | CROSS_TENANT_ACCESS             | Write outside the bound tenant
------------------|---------------------------------|------------------------------------
PRECONDITION_FAILED | TENANT_CONTEXT_REQUIRED       | No tenant bound to the operation
                  | TENANT_INACTIVE                 | Tenant is not ACTIVE

===============================================================================
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Transport-neutral error categories surfaced to callers."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have ``code`` and ``kind`` class attributes.
    """

    code: str = "STOCK_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_STATE


# =============================================================================
# INVALID_ARGUMENT
# =============================================================================


class InvalidArgumentError(StockKernelError):
    """Base exception for malformed input."""

    code: str = "INVALID_ARGUMENT"
    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT


class InvalidAllocationArgumentError(InvalidArgumentError):
    """A ledger function was called with an empty id or negative quantity."""

    code: str = "INVALID_ALLOCATION_ARGUMENT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidQuantityError(InvalidArgumentError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be an integer >= 1, got {value!r}")


class InvalidTransferRequestError(InvalidArgumentError):
    """Transfer or store request input is malformed."""

    code: str = "INVALID_TRANSFER_REQUEST"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid transfer request: {reason}")


class InvalidStorePlacementError(InvalidArgumentError):
    """A store's classification does not fit its parent."""

    code: str = "INVALID_STORE_PLACEMENT"

    def __init__(self, classification: str, parent_id: str | None, reason: str):
        self.classification = classification
        self.parent_id = parent_id
        self.reason = reason
        super().__init__(
            f"Cannot place {classification} store under parent {parent_id}: {reason}"
        )


# =============================================================================
# NOT_FOUND
# =============================================================================


class NotFoundError(StockKernelError):
    """Base exception for entities missing from tenant scope."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class TenantNotFoundError(NotFoundError):
    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class StoreNotFoundError(NotFoundError):
    code: str = "STORE_NOT_FOUND"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store not found: {store_id}")


class InventoryItemNotFoundError(NotFoundError):
    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, inventory_id: str):
        self.inventory_id = inventory_id
        super().__init__(f"Inventory item not found: {inventory_id}")


class InventoryBatchNotFoundError(NotFoundError):
    code: str = "INVENTORY_BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Inventory batch not found: {batch_id}")


class TransferRequestNotFoundError(NotFoundError):
    code: str = "TRANSFER_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Transfer request not found: {request_id}")


class StoreRequestNotFoundError(NotFoundError):
    code: str = "STORE_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Store request not found: {request_id}")


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class RoleNotFoundError(NotFoundError):
    code: str = "ROLE_NOT_FOUND"

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"Role not found: {role_id}")


class StoreAccessNotFoundError(NotFoundError):
    code: str = "STORE_ACCESS_NOT_FOUND"

    def __init__(self, user_id: str, store_id: str):
        self.user_id = user_id
        self.store_id = store_id
        super().__init__(f"User {user_id} has no active access to store {store_id}")


# =============================================================================
# CONFLICT
# =============================================================================


class ConflictError(StockKernelError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT


class DuplicateTransferRequestError(ConflictError):
    """An open request already exists for the same store pair and batch."""

    code: str = "TRANSFER_REQUEST_CONFLICT"

    def __init__(self, source_store_id: str, target_store_id: str, batch_id: str):
        self.source_store_id = source_store_id
        self.target_store_id = target_store_id
        self.batch_id = batch_id
        super().__init__(
            f"An open transfer request from store {source_store_id} to "
            f"{target_store_id} already exists for batch {batch_id}"
        )


class MainStoreAlreadyExistsError(ConflictError):
    code: str = "MAIN_STORE_EXISTS"

    def __init__(self, existing_store_id: str):
        self.existing_store_id = existing_store_id
        super().__init__(
            f"Tenant already has an active main store: {existing_store_id}"
        )


class DuplicateStoreAccessError(ConflictError):
    code: str = "STORE_ACCESS_EXISTS"

    def __init__(self, user_id: str, store_id: str):
        self.user_id = user_id
        self.store_id = store_id
        super().__init__(f"User {user_id} already has active access to store {store_id}")


# =============================================================================
# INVALID_STATE
# =============================================================================


class InvalidStateError(StockKernelError):
    """Base exception for operations the current state does not permit."""

    code: str = "INVALID_STATE"
    kind: ErrorKind = ErrorKind.INVALID_STATE


class InsufficientAllocationError(InvalidStateError):
    """The source store does not hold enough of the batch."""

    code: str = "INSUFFICIENT_STORE_ALLOCATION"

    def __init__(
        self,
        store_id: str,
        batch_id: str | None,
        requested: int,
        available: int,
    ):
        self.store_id = store_id
        self.batch_id = batch_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient inventory allocation in store {store_id} for batch "
            f"{batch_id}: requested {requested}, available {available}"
        )


class InvalidApprovedQuantityError(InvalidStateError):
    code: str = "INVALID_APPROVED_QUANTITY"

    def __init__(self, request_id: str, approved: object, requested: int):
        self.request_id = request_id
        self.approved = approved
        self.requested = requested
        super().__init__(
            f"Approved quantity {approved!r} for request {request_id} must be "
            f"between 1 and the requested quantity {requested}"
        )


class InvalidTransferRequestStateError(InvalidStateError):
    """Transfer request is not in a status that allows the operation."""

    code: str = "INVALID_TRANSFER_REQUEST_STATE"

    def __init__(
        self,
        request_id: str,
        current_state: str,
        required_states: tuple[str, ...],
        operation: str,
    ):
        self.request_id = request_id
        self.current_state = current_state
        self.required_states = required_states
        self.operation = operation
        super().__init__(
            f"Cannot {operation} transfer request {request_id}: status is "
            f"{current_state}, expected one of {', '.join(required_states)}"
        )


class InvalidStoreRequestStateError(InvalidStateError):
    code: str = "INVALID_STORE_REQUEST_STATE"

    def __init__(self, request_id: str, current_state: str, operation: str):
        self.request_id = request_id
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} store request {request_id} in status {current_state}"
        )


class StoreHierarchyViolationError(InvalidStateError):
    """The store pair is not permitted by the store hierarchy."""

    code: str = "STORE_HIERARCHY_VIOLATION"

    def __init__(self, from_store_id: str, to_store_id: str, reason: str):
        self.from_store_id = from_store_id
        self.to_store_id = to_store_id
        self.reason = reason
        super().__init__(
            f"Store hierarchy violation between {from_store_id} and "
            f"{to_store_id}: {reason}"
        )


class AllocationInvariantError(InvalidStateError):
    """A ledger write would break the batch's allocation invariants."""

    code: str = "ALLOCATION_INVARIANT_VIOLATION"

    def __init__(self, batch_id: str, violations: tuple[str, ...]):
        self.batch_id = batch_id
        self.violations = violations
        super().__init__(
            f"Allocation invariant violated for batch {batch_id}: "
            + "; ".join(violations)
        )


class StoreInUseError(InvalidStateError):
    code: str = "STORE_IN_USE"

    def __init__(self, store_id: str, reason: str):
        self.store_id = store_id
        self.reason = reason
        super().__init__(f"Store {store_id} cannot be removed: {reason}")


class ConcurrencyError(InvalidStateError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class ImmutabilityError(InvalidStateError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# =============================================================================
# PERMISSION_DENIED
# =============================================================================


class PermissionDeniedError(StockKernelError):
    """Base exception for authorization failures."""

    code: str = "PERMISSION_DENIED"
    kind: ErrorKind = ErrorKind.PERMISSION_DENIED


class StoreAccessDeniedError(PermissionDeniedError):
    """Actor lacks store-level or tenant super-admin authority."""

    code: str = "STORE_ACCESS_DENIED"

    def __init__(
        self,
        actor_id: str,
        store_id: str,
        required_permissions: tuple[str, ...],
        reason: str,
    ):
        self.actor_id = actor_id
        self.store_id = store_id
        self.required_permissions = required_permissions
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not act on store {store_id}: {reason}"
        )


class CrossTenantAccessError(PermissionDeniedError):
    """A write targeted a row that belongs to another tenant."""

    code: str = "CROSS_TENANT_ACCESS"

    def __init__(self, entity_type: str, entity_tenant_id: str, scope_tenant_id: str):
        self.entity_type = entity_type
        self.entity_tenant_id = entity_tenant_id
        self.scope_tenant_id = scope_tenant_id
        super().__init__(
            f"{entity_type} belongs to tenant {entity_tenant_id}, "
            f"operation is scoped to tenant {scope_tenant_id}"
        )


# =============================================================================
# PRECONDITION_FAILED
# =============================================================================


class TenantContextError(StockKernelError):
    """Base exception for missing or unusable tenant context."""

    code: str = "TENANT_CONTEXT_ERROR"
    kind: ErrorKind = ErrorKind.PRECONDITION_FAILED


class TenantContextRequiredError(TenantContextError):
    """No tenant is bound to the current operation."""

    code: str = "TENANT_CONTEXT_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Tenant ID is required for {operation}")


class TenantInactiveError(TenantContextError):
    code: str = "TENANT_INACTIVE"

    def __init__(self, tenant_id: str, status: str):
        self.tenant_id = tenant_id
        self.status = status
        super().__init__(f"Tenant {tenant_id} is {status}")
