"""
Pytest fixtures for the stock kernel test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path by default)
- Structured logging capture
- A seeded two-tenant world: store hierarchy, roles, users and one batch
- Tenant-scoped sessions and wired services

Environment Variables:
- DATABASE_URL: optional SQLAlchemy URL (e.g. a PostgreSQL test database).
  When unset every test gets its own SQLite file.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.db.tenancy import bind_tenant_scope
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.hierarchy import StoreClassification
from stock_kernel.domain.scope import TenantScope, TenantStatus
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.models.access import RoleModel, UserModel
from stock_kernel.models.inventory import InventoryBatchModel, InventoryItemModel
from stock_kernel.models.tenant import TenantModel
from stock_kernel.selectors.actor_selector import ActorSelector
from stock_kernel.services.access_service import AccessService
from stock_kernel.services.allocation_service import AllocationService
from stock_kernel.services.direct_transfer_service import DirectTransferService
from stock_kernel.services.store_request_service import StoreRequestService
from stock_kernel.services.store_service import StoreService
from stock_kernel.services.transfer_request_service import TransferRequestService

SEED_ACTOR_ID = "SEED"

ROLE_PERMISSIONS = {
    "Admin": ["manage:all"],
    "StoreManager": [
        "approve:StoreTransfer",
        "receive:StoreTransfer",
        "transfer:StoreTransfer",
        "read:Store",
        "read:StoreInventory",
    ],
    "StoreClerk": ["read:StoreInventory", "receive:StoreTransfer"],
    "Viewer": ["read:StoreInventory"],
}


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, transfer_requests):
            transfer_requests.create_request(...)
            logs = captured_logs()
            assert any(r["message"] == "transfer_request_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL from the environment, or a throwaway SQLite file."""
    return os.environ.get("DATABASE_URL") or f"sqlite+pysqlite:///{tmp_path}/stock.db"


@pytest.fixture
def engine(tmp_path):
    engine = init_engine_from_url(get_database_url(tmp_path), pool_size=5)
    drop_tables()
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 1, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Seeded world
# =============================================================================


@dataclass(frozen=True)
class TenantWorld:
    tenant_id: UUID
    main: UUID
    north: UUID
    south: UUID
    north_a: UUID
    north_b: UUID
    south_a: UUID
    item_id: UUID
    batch_id: UUID


@dataclass(frozen=True)
class World:
    """Ids of everything the seed created.

    Tenant ``tenant`` has the full hierarchy::

        Main Warehouse (MAIN)
        |-- North Hub (REGIONAL)
        |   |-- North Shop A (SUB_REGIONAL)
        |   `-- North Shop B (SUB_REGIONAL)
        `-- South Hub (REGIONAL)
            `-- South Shop A (SUB_REGIONAL)

    with batch B-001 (100 units, all at Main Warehouse).  ``other`` is a
    second tenant with the same shape and its own batch.
    """

    tenant: TenantWorld
    other: TenantWorld
    roles: dict[str, UUID]
    admin: UUID
    main_mgr: UUID
    north_mgr: UUID
    north_a_clerk: UUID
    north_b_mgr: UUID
    viewer: UUID
    outsider: UUID


def _add_user(session: Session, email: str, first: str, last: str) -> UUID:
    user = UserModel(email=email, first_name=first, last_name=last, is_active=True)
    session.add(user)
    session.flush()
    return user.id


def _seed_tenant(
    session: Session,
    name: str,
    clock: DeterministicClock,
) -> TenantWorld:
    tenant = TenantModel(company_name=name, status=TenantStatus.ACTIVE.value)
    session.add(tenant)
    session.flush()
    bind_tenant_scope(session, TenantScope(tenant_id=tenant.id))

    stores = StoreService(session, clock=clock)
    main = stores.create_store("Main Warehouse", StoreClassification.MAIN, SEED_ACTOR_ID)
    north = stores.create_store(
        "North Hub", StoreClassification.REGIONAL, SEED_ACTOR_ID, parent_id=main.store_id,
    )
    south = stores.create_store(
        "South Hub", StoreClassification.REGIONAL, SEED_ACTOR_ID, parent_id=main.store_id,
    )
    north_a = stores.create_store(
        "North Shop A", StoreClassification.SUB_REGIONAL, SEED_ACTOR_ID,
        parent_id=north.store_id,
    )
    north_b = stores.create_store(
        "North Shop B", StoreClassification.SUB_REGIONAL, SEED_ACTOR_ID,
        parent_id=north.store_id,
    )
    south_a = stores.create_store(
        "South Shop A", StoreClassification.SUB_REGIONAL, SEED_ACTOR_ID,
        parent_id=south.store_id,
    )

    item = InventoryItemModel(name="Paracetamol 500mg", sku="PARA-500", created_by_id=SEED_ACTOR_ID)
    session.add(item)
    session.flush()
    batch = AllocationService(session, clock=clock).receive_batch(
        item.id, "B-001", 100, Decimal("2.50"), SEED_ACTOR_ID,
    )
    return TenantWorld(
        tenant_id=tenant.id,
        main=main.store_id,
        north=north.store_id,
        south=south.store_id,
        north_a=north_a.store_id,
        north_b=north_b.store_id,
        south_a=south_a.store_id,
        item_id=item.id,
        batch_id=batch.id,
    )


@pytest.fixture
def world(session_factory, deterministic_clock) -> World:
    """Seed both tenants, users and role assignments, then commit."""
    session = session_factory()
    try:
        roles: dict[str, UUID] = {}
        for role_name, permissions in ROLE_PERMISSIONS.items():
            role = RoleModel(name=role_name, permissions=permissions)
            session.add(role)
            session.flush()
            roles[role_name] = role.id

        admin = _add_user(session, "admin@example.com", "Ada", "Admin")
        main_mgr = _add_user(session, "main.mgr@example.com", "Mona", "Main")
        north_mgr = _add_user(session, "north.mgr@example.com", "Nils", "North")
        north_a_clerk = _add_user(session, "north.a@example.com", "Nora", "Clerk")
        north_b_mgr = _add_user(session, "north.b@example.com", "Noel", "Bee")
        viewer = _add_user(session, "viewer@example.com", "Vic", "Viewer")
        outsider = _add_user(session, "outsider@example.com", "Otto", "Other")

        tenant = _seed_tenant(session, "Acme Pharmacies", deterministic_clock)
        access = AccessService(session, clock=deterministic_clock)
        access.grant_tenant_role(admin, roles["Admin"], SEED_ACTOR_ID)
        access.assign_store_access(main_mgr, tenant.main, roles["StoreManager"], SEED_ACTOR_ID)
        access.assign_store_access(north_mgr, tenant.north, roles["StoreManager"], SEED_ACTOR_ID)
        access.assign_store_access(
            north_a_clerk, tenant.north_a, roles["StoreClerk"], SEED_ACTOR_ID,
        )
        access.assign_store_access(
            north_b_mgr, tenant.north_b, roles["StoreManager"], SEED_ACTOR_ID,
        )
        access.assign_store_access(viewer, tenant.main, roles["Viewer"], SEED_ACTOR_ID)
        session.commit()

        other = _seed_tenant(session, "Globex Drugstores", deterministic_clock)
        AccessService(session, clock=deterministic_clock).grant_tenant_role(
            outsider, roles["Admin"], SEED_ACTOR_ID,
        )
        session.commit()
    finally:
        session.close()

    return World(
        tenant=tenant,
        other=other,
        roles=roles,
        admin=admin,
        main_mgr=main_mgr,
        north_mgr=north_mgr,
        north_a_clerk=north_a_clerk,
        north_b_mgr=north_b_mgr,
        viewer=viewer,
        outsider=outsider,
    )


# =============================================================================
# Scoped sessions and services
# =============================================================================


@pytest.fixture
def scoped_session(session_factory):
    """Factory for sessions bound to a tenant.  All are closed at teardown."""
    opened: list[Session] = []

    def _open(tenant_id: UUID, store_id: UUID | None = None) -> Session:
        session = session_factory()
        bind_tenant_scope(session, TenantScope(tenant_id=tenant_id, store_id=store_id))
        opened.append(session)
        return session

    yield _open

    for session in opened:
        session.rollback()
        session.close()


@pytest.fixture
def session(world, scoped_session) -> Session:
    """A fresh session bound to the primary tenant."""
    return scoped_session(world.tenant.tenant_id)


@pytest.fixture
def directory(session) -> ActorSelector:
    return ActorSelector(session)


@pytest.fixture
def transfer_requests(session, directory, deterministic_clock) -> TransferRequestService:
    return TransferRequestService(session, directory, clock=deterministic_clock)


@pytest.fixture
def direct_transfers(session, directory, deterministic_clock) -> DirectTransferService:
    return DirectTransferService(session, directory, clock=deterministic_clock)


@pytest.fixture
def store_requests(session, directory, deterministic_clock) -> StoreRequestService:
    return StoreRequestService(session, directory, clock=deterministic_clock)


@pytest.fixture
def allocation_service(session, deterministic_clock) -> AllocationService:
    return AllocationService(session, clock=deterministic_clock)


@pytest.fixture
def store_service(session, deterministic_clock) -> StoreService:
    return StoreService(session, clock=deterministic_clock)


@pytest.fixture
def access_service(session, deterministic_clock) -> AccessService:
    return AccessService(session, clock=deterministic_clock)


@pytest.fixture
def ledger_of(session):
    """Return {store_id: allocated} for a batch, read fresh from the database."""
    def _ledger(batch_id: UUID) -> dict[UUID, int]:
        session.expire_all()
        batch = session.get(InventoryBatchModel, batch_id)
        return {UUID(k): v.allocated for k, v in batch.allocations.items()}

    return _ledger
