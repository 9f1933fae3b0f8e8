"""
Store authorization policy (``stock_kernel.domain.access``).

Responsibility
--------------
The single policy function that decides whether an actor may act on a
store, plus the closed permission vocabulary and the ``ActorDirectory``
protocol services use to obtain an actor's grants.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Grants are loaded by a selector and
passed in; the policy itself performs no I/O.

Invariants enforced
-------------------
* A tenant super-administrator may act on every store of the tenant.
* Otherwise the actor needs an active role at the store granting at least
  one of the required permissions, or the global ``manage:all``.
* Approve, confirm, cancel, direct transfer and store-request approval all
  go through ``evaluate_store_access``; there is no second copy of the rule.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Protocol
from uuid import UUID


class PermissionAction(str, Enum):
    MANAGE = "manage"
    READ = "read"
    CONFIGURE = "configure"
    ALLOCATE = "allocate"
    ADJUST = "adjust"
    TRANSFER = "transfer"
    RECEIVE = "receive"
    APPROVE = "approve"
    EXPORT = "export"


class PermissionSubject(str, Enum):
    ALL = "all"
    STORE = "Store"
    STORE_CONFIGURATION = "StoreConfiguration"
    STORE_INVENTORY = "StoreInventory"
    STORE_TRANSFER = "StoreTransfer"
    REPORTS = "Reports"


@dataclass(frozen=True)
class Permission:
    """An ``action:subject`` pair."""

    action: PermissionAction
    subject: PermissionSubject

    def __str__(self) -> str:
        return f"{self.action.value}:{self.subject.value}"

    @classmethod
    def parse(cls, value: str) -> Permission:
        """Parse ``"approve:StoreTransfer"``; raises ValueError on unknown parts."""
        action, sep, subject = value.partition(":")
        if not sep:
            raise ValueError(f"Permission must look like action:subject, got {value!r}")
        return cls(PermissionAction(action), PermissionSubject(subject))


MANAGE_ALL = Permission(PermissionAction.MANAGE, PermissionSubject.ALL)

APPROVE_TRANSFER_PERMISSIONS: tuple[Permission, ...] = (
    Permission(PermissionAction.APPROVE, PermissionSubject.STORE_TRANSFER),
    Permission(PermissionAction.MANAGE, PermissionSubject.STORE_TRANSFER),
)
RECEIVE_TRANSFER_PERMISSIONS: tuple[Permission, ...] = (
    Permission(PermissionAction.RECEIVE, PermissionSubject.STORE_TRANSFER),
    Permission(PermissionAction.MANAGE, PermissionSubject.STORE_TRANSFER),
)
EXECUTE_TRANSFER_PERMISSIONS: tuple[Permission, ...] = (
    Permission(PermissionAction.TRANSFER, PermissionSubject.STORE_TRANSFER),
    Permission(PermissionAction.MANAGE, PermissionSubject.STORE_TRANSFER),
)


@dataclass(frozen=True)
class ActorGrants:
    """Everything the policy needs to know about one actor in one tenant.

    ``store_permissions`` only lists stores where the actor holds an
    active role.
    """

    actor_id: UUID
    is_tenant_super_admin: bool = False
    store_permissions: Mapping[UUID, frozenset[Permission]] = field(
        default_factory=dict,
    )


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


def evaluate_store_access(
    grants: ActorGrants,
    store_id: UUID,
    required: Iterable[Permission],
) -> AccessDecision:
    """Decide whether ``grants`` allow acting on ``store_id``."""
    if grants.is_tenant_super_admin:
        return AccessDecision(True, "tenant super-administrator")

    held = grants.store_permissions.get(store_id)
    if held is None:
        return AccessDecision(False, "actor holds no role at this store")

    if MANAGE_ALL in held:
        return AccessDecision(True, f"store role grants {MANAGE_ALL}")

    required = tuple(required)
    for permission in required:
        if permission in held:
            return AccessDecision(True, f"store role grants {permission}")

    wanted = ", ".join(str(p) for p in required)
    return AccessDecision(False, f"store role lacks any of: {wanted}")


class ActorDirectory(Protocol):
    """User/role directory consumed by the services."""

    def display_name(self, actor_id: UUID) -> str:
        ...

    def grants_for(self, actor_id: UUID) -> ActorGrants:
        ...
