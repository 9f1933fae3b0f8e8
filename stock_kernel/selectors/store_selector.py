"""
Module: stock_kernel.selectors.store_selector
Responsibility: Tenant store directory: store lookups, the MAIN store,
    hierarchy children, display names and per-user accessible stores.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.access import ActorGrants
from stock_kernel.domain.hierarchy import StoreClassification, StoreNode
from stock_kernel.exceptions import StoreNotFoundError
from stock_kernel.models.store import StoreModel
from stock_kernel.selectors.base import BaseSelector


class StoreSelector(BaseSelector):
    """Read access to the active stores of the bound tenant."""

    def get_store(self, store_id: UUID) -> StoreNode:
        """Active store by id.  Soft-deleted stores read as missing."""
        model = self.session.execute(
            select(StoreModel).where(
                StoreModel.id == store_id,
                StoreModel.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if model is None:
            raise StoreNotFoundError(str(store_id))
        return model.to_node()

    def find_main_store(self) -> StoreNode | None:
        model = self.session.execute(
            select(StoreModel).where(
                StoreModel.classification == StoreClassification.MAIN.value,
                StoreModel.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        return model.to_node() if model is not None else None

    def get_main_store(self) -> StoreNode:
        main = self.find_main_store()
        if main is None:
            raise StoreNotFoundError("MAIN")
        return main

    def list_stores(self) -> list[StoreNode]:
        models = self.session.execute(
            select(StoreModel)
            .where(StoreModel.deleted_at.is_(None))
            .order_by(StoreModel.name)
        ).scalars().all()
        return [m.to_node() for m in models]

    def children(self, store_id: UUID) -> list[StoreNode]:
        models = self.session.execute(
            select(StoreModel)
            .where(
                StoreModel.parent_id == store_id,
                StoreModel.deleted_at.is_(None),
            )
            .order_by(StoreModel.name)
        ).scalars().all()
        return [m.to_node() for m in models]

    def store_names(self) -> dict[UUID, str]:
        """Names of every store of the tenant, soft-deleted ones included."""
        rows = self.session.execute(select(StoreModel.id, StoreModel.name)).all()
        return {row.id: row.name for row in rows}

    def accessible_stores(self, grants: ActorGrants) -> list[StoreNode]:
        """Stores the actor may see: all of them for a super-administrator."""
        stores = self.list_stores()
        if grants.is_tenant_super_admin:
            return stores
        return [s for s in stores if s.store_id in grants.store_permissions]
