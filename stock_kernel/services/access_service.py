"""
stock_kernel.services.access_service -- Store and tenant role assignments.

Responsibility:
    Writes the assignments ActorSelector reads when it builds ActorGrants.
    Role definitions themselves are a global catalog managed elsewhere.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - At most one active assignment per (user, store).
    - Revocation keeps the row (is_active = False) for history.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.exceptions import (
    DuplicateStoreAccessError,
    RoleNotFoundError,
    StoreAccessNotFoundError,
    UserNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.access import (
    RoleModel,
    UserModel,
    UserStoreAccessModel,
    UserTenantRoleModel,
)
from stock_kernel.selectors.store_selector import StoreSelector
from stock_kernel.services.base import BaseService

logger = get_logger("services.access")


class AccessService(BaseService):
    """Assign and revoke roles for users of the bound tenant."""

    def _require_user_and_role(self, user_id: UUID, role_id: UUID) -> None:
        if self.session.get(UserModel, user_id) is None:
            raise UserNotFoundError(str(user_id))
        if self.session.get(RoleModel, role_id) is None:
            raise RoleNotFoundError(str(role_id))

    def _active_access(self, user_id: UUID, store_id: UUID) -> UserStoreAccessModel | None:
        return self.session.execute(
            select(UserStoreAccessModel).where(
                UserStoreAccessModel.user_id == user_id,
                UserStoreAccessModel.store_id == store_id,
                UserStoreAccessModel.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def assign_store_access(
        self,
        user_id: UUID,
        store_id: UUID,
        role_id: UUID,
        actor_id: UUID | str,
    ) -> UserStoreAccessModel:
        self._require_user_and_role(user_id, role_id)
        StoreSelector(self.session).get_store(store_id)
        if self._active_access(user_id, store_id) is not None:
            raise DuplicateStoreAccessError(str(user_id), str(store_id))

        access = UserStoreAccessModel(
            user_id=user_id,
            store_id=store_id,
            role_id=role_id,
            is_active=True,
            assigned_by_id=str(actor_id),
            assigned_at=self.clock.now(),
        )
        self.session.add(access)
        self.session.flush()
        logger.info(
            "store_access_assigned",
            extra={
                "user_id": str(user_id),
                "store_id": str(store_id),
                "role_id": str(role_id),
            },
        )
        return access

    def revoke_store_access(
        self, user_id: UUID, store_id: UUID, actor_id: UUID | str,
    ) -> None:
        access = self._active_access(user_id, store_id)
        if access is None:
            raise StoreAccessNotFoundError(str(user_id), str(store_id))
        access.is_active = False
        access.revoked_by_id = str(actor_id)
        access.revoked_at = self.clock.now()
        self.session.flush()
        logger.info(
            "store_access_revoked",
            extra={"user_id": str(user_id), "store_id": str(store_id)},
        )

    def grant_tenant_role(
        self, user_id: UUID, role_id: UUID, actor_id: UUID | str,
    ) -> UserTenantRoleModel:
        """Grant a tenant-wide role.  Granting an existing role is a no-op."""
        self._require_user_and_role(user_id, role_id)
        existing = self.session.execute(
            select(UserTenantRoleModel).where(
                UserTenantRoleModel.user_id == user_id,
                UserTenantRoleModel.role_id == role_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing

        assignment = UserTenantRoleModel(
            user_id=user_id,
            role_id=role_id,
            granted_by_id=str(actor_id),
            granted_at=self.clock.now(),
        )
        self.session.add(assignment)
        self.session.flush()
        logger.info(
            "tenant_role_granted",
            extra={"user_id": str(user_id), "role_id": str(role_id)},
        )
        return assignment
