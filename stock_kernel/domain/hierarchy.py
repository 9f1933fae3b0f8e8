"""
Store hierarchy rules (``stock_kernel.domain.hierarchy``).

Responsibility
--------------
Decides which stores may push stock to, or request stock from, which other
stores inside a tenant's three-level tree (MAIN > REGIONAL > SUB_REGIONAL),
and which placements are legal when a store is created.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over ``StoreNode`` snapshots.
Callers load the nodes; nothing here touches the database.

Invariants enforced
-------------------
* Stores of different tenants never transfer or request between each other.
* A store never transfers to, or requests from, itself.
* REGIONAL stores hang off the MAIN store; SUB_REGIONAL stores hang off a
  REGIONAL store; SUB_REGIONAL stores have no children.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class StoreClassification(str, Enum):
    """Level of a store in the tenant hierarchy."""

    MAIN = "MAIN"
    REGIONAL = "REGIONAL"
    SUB_REGIONAL = "SUB_REGIONAL"


@dataclass(frozen=True)
class StoreNode:
    """Hierarchy-relevant snapshot of a store."""

    store_id: UUID
    tenant_id: UUID
    name: str
    classification: StoreClassification
    parent_id: UUID | None = None


@dataclass(frozen=True)
class HierarchyDecision:
    allowed: bool
    reason: str | None = None


def can_transfer(from_store: StoreNode, to_store: StoreNode) -> HierarchyDecision:
    """Whether ``from_store`` may push stock to ``to_store``."""
    if from_store.tenant_id != to_store.tenant_id:
        return HierarchyDecision(False, "stores belong to different tenants")
    if from_store.store_id == to_store.store_id:
        return HierarchyDecision(False, "source and target are the same store")

    if from_store.classification is StoreClassification.MAIN:
        return HierarchyDecision(True)

    if from_store.classification is StoreClassification.REGIONAL:
        if (
            to_store.classification is StoreClassification.SUB_REGIONAL
            and to_store.parent_id == from_store.store_id
        ):
            return HierarchyDecision(True)
        return HierarchyDecision(
            False,
            "regional stores may only transfer to their own sub-regional stores",
        )

    if (
        to_store.classification is StoreClassification.SUB_REGIONAL
        and from_store.parent_id is not None
        and to_store.parent_id == from_store.parent_id
    ):
        return HierarchyDecision(True)
    return HierarchyDecision(
        False,
        "sub-regional stores may only transfer to sibling stores under the same regional store",
    )


def can_request(from_store: StoreNode, to_store: StoreNode) -> bool:
    """Whether ``from_store`` may ask ``to_store`` for stock.

    Only the direct parent or the tenant's MAIN store can be asked.
    """
    if from_store.tenant_id != to_store.tenant_id:
        return False
    if from_store.store_id == to_store.store_id:
        return False
    if to_store.classification is StoreClassification.MAIN:
        return True
    return from_store.parent_id == to_store.store_id


def validate_store_placement(
    classification: StoreClassification,
    parent: StoreNode | None,
    existing_main: StoreNode | None,
) -> HierarchyDecision:
    """Check where a new store of ``classification`` may sit."""
    if classification is StoreClassification.MAIN:
        if parent is not None:
            return HierarchyDecision(False, "a main store has no parent")
        return HierarchyDecision(True)

    if parent is None:
        return HierarchyDecision(False, f"a {classification.value} store needs a parent")

    if classification is StoreClassification.REGIONAL:
        if parent.classification is not StoreClassification.MAIN:
            return HierarchyDecision(False, "a regional store's parent must be the main store")
        if existing_main is not None and parent.store_id != existing_main.store_id:
            return HierarchyDecision(False, "a regional store's parent must be the active main store")
        return HierarchyDecision(True)

    if parent.classification is not StoreClassification.REGIONAL:
        return HierarchyDecision(False, "a sub-regional store's parent must be a regional store")
    return HierarchyDecision(True)
