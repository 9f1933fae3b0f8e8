"""
Module: stock_kernel.selectors.actor_selector
Responsibility: SQL-backed ActorDirectory.  Resolves display names from the
    global user catalog and builds ActorGrants from the tenant's role
    assignments.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Inactive users and revoked store assignments grant nothing.
    - Super-administrator status comes from tenant-level roles only: a role
      whose name is configured as a super-admin name, or which carries
      ``manage:all``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.access import MANAGE_ALL, ActorGrants, Permission
from stock_kernel.models.access import UserModel, UserStoreAccessModel, UserTenantRoleModel
from stock_kernel.selectors.base import BaseSelector

DEFAULT_SUPER_ADMIN_ROLE_NAMES: frozenset[str] = frozenset({"Admin", "super-admin"})

UNKNOWN_USER_NAME = "Unknown User"


class ActorSelector(BaseSelector):
    """Implements ``stock_kernel.domain.access.ActorDirectory``."""

    def __init__(
        self,
        session: Session,
        super_admin_role_names: Iterable[str] = DEFAULT_SUPER_ADMIN_ROLE_NAMES,
    ):
        super().__init__(session)
        self._super_admin_role_names = frozenset(super_admin_role_names)

    def display_name(self, actor_id: UUID) -> str:
        user = self.session.get(UserModel, actor_id)
        if user is None:
            return UNKNOWN_USER_NAME
        return user.display_name

    def grants_for(self, actor_id: UUID) -> ActorGrants:
        user = self.session.get(UserModel, actor_id)
        if user is None or not user.is_active:
            return ActorGrants(actor_id=actor_id)

        tenant_roles = self.session.execute(
            select(UserTenantRoleModel).where(UserTenantRoleModel.user_id == actor_id)
        ).scalars().all()
        is_super_admin = any(
            assignment.role.name in self._super_admin_role_names
            or MANAGE_ALL in assignment.role.permission_set
            for assignment in tenant_roles
        )

        accesses = self.session.execute(
            select(UserStoreAccessModel).where(
                UserStoreAccessModel.user_id == actor_id,
                UserStoreAccessModel.is_active.is_(True),
            )
        ).scalars().all()
        store_permissions: dict[UUID, set[Permission]] = defaultdict(set)
        for access in accesses:
            store_permissions[access.store_id] |= access.role.permission_set

        return ActorGrants(
            actor_id=actor_id,
            is_tenant_super_admin=is_super_admin,
            store_permissions={
                store_id: frozenset(perms)
                for store_id, perms in store_permissions.items()
            },
        )
