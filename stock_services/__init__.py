"""
stock_services -- Package init and public API.

Responsibility:
    The outer service layer: per-request tenant-scoped sessions and the
    store inventory operations with their error-to-status mapping, and
    start-up and allocation jobs driven by configuration.

Architecture position:
    Services.  Dependency direction (enforced by
    tests/architecture/test_kernel_boundary.py):
        stock_services/ -> stock_kernel/  (allowed)
        stock_services/ -> stock_config/  (allowed)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
"""

from stock_services.bootstrap import (
    run_initial_allocation,
    start_from_config,
    validate_ledgers,
)
from stock_services.store_inventory_api import (
    StoreInventoryOperations,
    error_body,
    http_status_for,
)
from stock_services.tenant_context import resolve_active_tenant, tenant_session

__all__ = [
    "StoreInventoryOperations",
    "error_body",
    "http_status_for",
    "resolve_active_tenant",
    "run_initial_allocation",
    "start_from_config",
    "tenant_session",
    "validate_ledgers",
]
