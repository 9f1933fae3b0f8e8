"""
stock_services.bootstrap -- Process start-up and allocation jobs driven by
configuration.

Responsibility:
    Turns a StockConfiguration into a running process (logging level,
    engine, session factory) and runs the per-tenant allocation jobs that
    legacy data needs: seeding empty ledgers and validating every ledger
    against its batch aggregates.

Architecture position:
    Services.  The only place configuration values reach
    ``stock_kernel.db.engine`` and the migration helpers of
    AllocationService.

Failure modes:
    - Engine errors from init_engine_from_url propagate.
    - Tenant errors from tenant_session propagate; a failing job rolls its
      tenant's transaction back.
"""

from __future__ import annotations

import logging
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from stock_config.schema import StockConfiguration
from stock_kernel.db.engine import get_session_factory, init_engine_from_url
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.views import BatchLedgerViolation, InitialAllocationSummary
from stock_kernel.logging_config import configure_logging, get_logger
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.allocation_service import AllocationService
from stock_services.tenant_context import tenant_session

logger = get_logger("services.bootstrap")


def start_from_config(config: StockConfiguration) -> sessionmaker[Session]:
    """Configure logging and the engine; return the session factory."""
    configure_logging(level=config.logging.level.upper())
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    logger.info(
        "stock_services_started",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "dialect": engine.dialect.name,
        },
    )
    return get_session_factory()


def run_initial_allocation(
    session_factory: Callable[[], Session],
    tenant_id: UUID,
    config: StockConfiguration,
    clock: Clock | None = None,
) -> InitialAllocationSummary:
    """Seed the ledger of every batch in the tenant that has none.

    Idempotent: batches with ledger entries are skipped.  Batches that
    cannot be seeded are listed in the summary; the ones seeded alongside
    them are still committed.
    """
    migration = config.migration
    with tenant_session(
        session_factory, tenant_id, correlation_id=f"initial-allocation-{tenant_id}",
    ) as session:
        summary = AllocationService(session, clock=clock).set_initial_allocations(
            actor_id=migration.actor_id, chunk_size=migration.chunk_size,
        )
    logger.log(
        logging.WARNING if summary.failed else logging.INFO,
        "initial_allocation_completed",
        extra={
            "tenant_id": str(tenant_id),
            "seeded": summary.seeded,
            "skipped": summary.skipped,
            "failed": summary.failed_count,
            "failed_batch_numbers": [f.batch_number for f in summary.failed],
        },
    )
    return summary


def validate_ledgers(
    session_factory: Callable[[], Session],
    tenant_id: UUID,
) -> list[BatchLedgerViolation]:
    """Every batch in the tenant whose ledger breaks the allocation invariants."""
    with tenant_session(session_factory, tenant_id) as session:
        violations = InventorySelector(session).find_ledger_violations()
    if violations:
        logger.warning(
            "ledger_violations_found",
            extra={
                "tenant_id": str(tenant_id),
                "batch_numbers": [v.batch_number for v in violations],
            },
        )
    return violations
