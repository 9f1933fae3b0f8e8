"""
Module: stock_kernel.models.store
Responsibility: ORM persistence for stores and their hierarchy links.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - classification limited to MAIN / REGIONAL / SUB_REGIONAL (check constraint).
    - At most one non-deleted MAIN store per tenant (partial unique index).
    - Parent placement rules are enforced by StoreService via
      domain.hierarchy.validate_store_placement.

Failure modes:
    - IntegrityError on a second active MAIN store when the service check is
      raced.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString
from stock_kernel.domain.hierarchy import StoreClassification, StoreNode


class StoreModel(TenantScopedMixin, TrackedBase):
    """A stock-holding location in a tenant's three-level hierarchy."""

    __tablename__ = "stores"

    __table_args__ = (
        CheckConstraint(
            "classification IN ('MAIN', 'REGIONAL', 'SUB_REGIONAL')",
            name="ck_stores_valid_classification",
        ),
        Index(
            "uq_stores_active_main",
            "tenant_id",
            unique=True,
            postgresql_where=text("classification = 'MAIN' AND deleted_at IS NULL"),
            sqlite_where=text("classification = 'MAIN' AND deleted_at IS NULL"),
        ),
        Index("ix_stores_tenant_parent", "tenant_id", "parent_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    classification: Mapped[str] = mapped_column(String(20), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    @property
    def store_classification(self) -> StoreClassification:
        return StoreClassification(self.classification)

    def to_node(self) -> StoreNode:
        return StoreNode(
            store_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            classification=self.store_classification,
            parent_id=self.parent_id,
        )

    def __repr__(self) -> str:
        return f"<StoreModel {self.name} ({self.classification})>"
