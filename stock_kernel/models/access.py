"""
Module: stock_kernel.models.access
Responsibility: ORM persistence for users, the global role catalog, and the
    tenant-level and store-level role assignments that feed the store
    authorization policy.

Architecture position: Kernel > Models.  ``users`` and ``roles`` are global
    catalogs exempt from tenant scoping; assignments are tenant-scoped.

Invariants enforced:
    - Role permissions are stored as ``action:subject`` strings and parsed
      into closed enums on read (unknown strings fail loudly).
    - At most one active store assignment per (tenant, user, store).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, JSONDocument, TenantScopedMixin, UUIDString
from stock_kernel.domain.access import Permission


class UserModel(Base):
    """A person who acts on stores.  Identity only; no credentials here."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email


class RoleModel(Base):
    """Named bundle of permissions, shared by all tenants."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    permissions: Mapped[list[Any]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )

    @property
    def permission_set(self) -> frozenset[Permission]:
        return frozenset(Permission.parse(p) for p in self.permissions or ())


class UserTenantRoleModel(TenantScopedMixin, Base):
    """Tenant-wide role of a user (super-administrators live here)."""

    __tablename__ = "user_tenant_roles"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "user_id", "role_id",
            name="uq_user_tenant_roles_assignment",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False, index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("roles.id"), nullable=False,
    )
    granted_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    role: Mapped[RoleModel] = relationship(RoleModel, lazy="joined")


class UserStoreAccessModel(TenantScopedMixin, Base):
    """A user's role at one store.  Revoked rows are kept for history."""

    __tablename__ = "user_store_access"

    __table_args__ = (
        Index(
            "uq_user_store_access_active",
            "tenant_id", "user_id", "store_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False, index=True,
    )
    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False, index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("roles.id"), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    assigned_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    revoked_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    role: Mapped[RoleModel] = relationship(RoleModel, lazy="joined")
