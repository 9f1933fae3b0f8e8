"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map, the TrackedBase
    mixin for audit timestamps, and the TenantScopedMixin that marks a model
    as tenant-owned.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  MUST NOT import from models/,
    services/, selectors/, or outer layers.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Decimal maps to Numeric(38, 9); NEVER float for prices.
    - Every TenantScopedMixin model carries a NOT NULL, indexed tenant_id.
      db/tenancy.py keys its filters and write checks off this mixin.

Failure modes:
    - IntegrityError on a NULL tenant_id (scope listener not registered and
      caller did not set it).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import TypeDecorator

# JSONB on PostgreSQL, JSON text elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - dict maps to a JSON document column.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
        dict[str, Any]: JSONDocument,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required; updated_by_id is set by every mutation
          that goes through a service.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[str] = mapped_column(String(64), nullable=False)

    updated_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class TenantScopedMixin:
    """
    Marks a model as owned by one tenant.

    Contract:
        Rows are only visible to, and writable from, sessions bound to the
        same tenant (see db/tenancy.py).  Services never set tenant_id by
        hand; the flush listener stamps it from the bound scope.
    """

    @declared_attr
    def tenant_id(cls) -> Mapped[PyUUID]:
        return mapped_column(
            UUIDString(),
            ForeignKey("tenants.id"),
            nullable=False,
            index=True,
        )
