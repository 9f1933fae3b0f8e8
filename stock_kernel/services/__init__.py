"""Write services.  Every service flushes; callers own commit and rollback."""

from stock_kernel.services.access_service import AccessService
from stock_kernel.services.allocation_service import AllocationService
from stock_kernel.services.base import BaseService, require_store_access
from stock_kernel.services.direct_transfer_service import DirectTransferService
from stock_kernel.services.store_request_service import StoreRequestService
from stock_kernel.services.store_service import StoreService
from stock_kernel.services.transfer_request_service import TransferRequestService

__all__ = [
    "AccessService",
    "AllocationService",
    "BaseService",
    "DirectTransferService",
    "StoreRequestService",
    "StoreService",
    "TransferRequestService",
    "require_store_access",
]
