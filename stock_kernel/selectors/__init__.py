"""Read-only query selectors over the tenant-scoped session."""

from stock_kernel.selectors.actor_selector import ActorSelector
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.selectors.transfer_selector import TransferSelector

__all__ = [
    "ActorSelector",
    "BaseSelector",
    "InventorySelector",
    "StoreSelector",
    "TransferSelector",
]
