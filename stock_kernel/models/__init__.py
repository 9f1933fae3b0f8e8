"""ORM models.  Importing this package registers every table on Base.metadata."""

from stock_kernel.models.access import (
    RoleModel,
    UserModel,
    UserStoreAccessModel,
    UserTenantRoleModel,
)
from stock_kernel.models.inventory import InventoryBatchModel, InventoryItemModel
from stock_kernel.models.store import StoreModel
from stock_kernel.models.store_request import StoreRequestModel
from stock_kernel.models.store_transfer import StoreTransferModel
from stock_kernel.models.tenant import TenantModel
from stock_kernel.models.transfer_request import TransferRequestModel

__all__ = [
    "InventoryBatchModel",
    "InventoryItemModel",
    "RoleModel",
    "StoreModel",
    "StoreRequestModel",
    "StoreTransferModel",
    "TenantModel",
    "TransferRequestModel",
    "UserModel",
    "UserStoreAccessModel",
    "UserTenantRoleModel",
]
