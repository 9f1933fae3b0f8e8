"""
Module: stock_kernel.selectors.transfer_selector
Responsibility: Listings of transfer requests, completed store transfers and
    store requests for one store.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select

from stock_kernel.domain.transfer import (
    StoreRequest,
    StoreRequestStatus,
    StoreTransfer,
    TransferRequest,
    TransferRequestStatus,
    TransferRequestType,
)
from stock_kernel.domain.views import Page, TransferRequestView
from stock_kernel.exceptions import (
    InvalidQuantityError,
    StoreRequestNotFoundError,
    TransferRequestNotFoundError,
)
from stock_kernel.models.inventory import InventoryBatchModel
from stock_kernel.models.store_request import StoreRequestModel
from stock_kernel.models.store_transfer import StoreTransferModel
from stock_kernel.models.transfer_request import TransferRequestModel
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.inventory_selector import UNKNOWN_STORE_NAME
from stock_kernel.selectors.store_selector import StoreSelector


def _check_page(page: int, limit: int) -> int:
    if page < 1:
        raise InvalidQuantityError("page", page)
    if limit < 1:
        raise InvalidQuantityError("limit", limit)
    return (page - 1) * limit


class TransferSelector(BaseSelector):
    """Read access to the three movement workflows."""

    def get_request(self, request_id: UUID) -> TransferRequest:
        model = self.session.get(TransferRequestModel, request_id)
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))
        return model.to_dto()

    def get_store_request(self, request_id: UUID) -> StoreRequest:
        model = self.session.get(StoreRequestModel, request_id)
        if model is None:
            raise StoreRequestNotFoundError(str(request_id))
        return model.to_dto()

    def list_transfer_requests(
        self,
        store_id: UUID,
        *,
        status: TransferRequestStatus | None = None,
        request_type: TransferRequestType | None = None,
        source_store_id: UUID | None = None,
        target_store_id: UUID | None = None,
    ) -> list[TransferRequestView]:
        """Requests where ``store_id`` is source or target, newest first.

        Raises StoreNotFoundError for an unknown or deleted store.
        """
        stores = StoreSelector(self.session)
        stores.get_store(store_id)
        names = stores.store_names()

        stmt = (
            select(TransferRequestModel, InventoryBatchModel)
            .join(InventoryBatchModel, TransferRequestModel.batch_id == InventoryBatchModel.id)
            .where(
                InventoryBatchModel.deleted_at.is_(None),
                or_(
                    TransferRequestModel.source_store_id == store_id,
                    TransferRequestModel.target_store_id == store_id,
                ),
            )
            .order_by(TransferRequestModel.requested_at.desc(), TransferRequestModel.id)
        )
        if status is not None:
            stmt = stmt.where(TransferRequestModel.status == status.value)
        if request_type is not None:
            stmt = stmt.where(TransferRequestModel.request_type == request_type.value)
        if source_store_id is not None:
            stmt = stmt.where(TransferRequestModel.source_store_id == source_store_id)
        if target_store_id is not None:
            stmt = stmt.where(TransferRequestModel.target_store_id == target_store_id)

        views: list[TransferRequestView] = []
        for request, batch in self.session.execute(stmt).all():
            views.append(
                TransferRequestView(
                    request=request.to_dto(),
                    batch_number=batch.batch_number,
                    inventory_id=batch.inventory_id,
                    inventory_name=batch.inventory.name,
                    source_store_name=names.get(request.source_store_id, UNKNOWN_STORE_NAME),
                    target_store_name=names.get(request.target_store_id, UNKNOWN_STORE_NAME),
                )
            )
        return views

    def list_store_transfers(
        self, store_id: UUID, *, page: int = 1, limit: int = 20,
    ) -> Page[StoreTransfer]:
        """Completed transfers into or out of ``store_id``, newest first."""
        offset = _check_page(page, limit)
        touches_store = or_(
            StoreTransferModel.from_store_id == store_id,
            StoreTransferModel.to_store_id == store_id,
        )
        total = self.session.execute(
            select(func.count(StoreTransferModel.id)).where(touches_store)
        ).scalar_one()
        models = self.session.execute(
            select(StoreTransferModel)
            .where(touches_store)
            .order_by(StoreTransferModel.completed_at.desc(), StoreTransferModel.transfer_number)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(m.to_dto() for m in models),
            page=page,
            limit=limit,
            total=total,
        )

    def list_store_requests(
        self,
        store_id: UUID,
        *,
        status: StoreRequestStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[StoreRequest]:
        """Store requests made by or addressed to ``store_id``, newest first."""
        offset = _check_page(page, limit)
        conditions = [
            or_(
                StoreRequestModel.requesting_store_id == store_id,
                StoreRequestModel.supplying_store_id == store_id,
            )
        ]
        if status is not None:
            conditions.append(StoreRequestModel.status == status.value)
        total = self.session.execute(
            select(func.count(StoreRequestModel.id)).where(*conditions)
        ).scalar_one()
        models = self.session.execute(
            select(StoreRequestModel)
            .where(*conditions)
            .order_by(StoreRequestModel.requested_at.desc(), StoreRequestModel.request_number)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(m.to_dto() for m in models),
            page=page,
            limit=limit,
            total=total,
        )
