"""
Tests for the store authorization policy and permission vocabulary.
"""

from uuid import uuid4

import pytest

from stock_kernel.domain.access import (
    APPROVE_TRANSFER_PERMISSIONS,
    EXECUTE_TRANSFER_PERMISSIONS,
    MANAGE_ALL,
    RECEIVE_TRANSFER_PERMISSIONS,
    ActorGrants,
    Permission,
    PermissionAction,
    PermissionSubject,
    evaluate_store_access,
)

STORE = uuid4()
OTHER_STORE = uuid4()


def grants(*permissions: str, store=STORE, super_admin=False) -> ActorGrants:
    return ActorGrants(
        actor_id=uuid4(),
        is_tenant_super_admin=super_admin,
        store_permissions={store: frozenset(Permission.parse(p) for p in permissions)},
    )


class TestPermissionParsing:
    def test_parse_and_str_round_trip(self):
        permission = Permission.parse("approve:StoreTransfer")
        assert permission.action is PermissionAction.APPROVE
        assert permission.subject is PermissionSubject.STORE_TRANSFER
        assert str(permission) == "approve:StoreTransfer"

    @pytest.mark.parametrize("value", ["approve", "fly:StoreTransfer", "approve:Nothing"])
    def test_unknown_parts_fail(self, value):
        with pytest.raises(ValueError):
            Permission.parse(value)


class TestEvaluateStoreAccess:
    def test_super_admin_allowed_anywhere(self):
        decision = evaluate_store_access(
            ActorGrants(actor_id=uuid4(), is_tenant_super_admin=True),
            OTHER_STORE,
            APPROVE_TRANSFER_PERMISSIONS,
        )
        assert decision.allowed

    def test_no_role_at_store_denied(self):
        decision = evaluate_store_access(
            grants("approve:StoreTransfer"), OTHER_STORE, APPROVE_TRANSFER_PERMISSIONS,
        )
        assert not decision.allowed
        assert "no role" in decision.reason

    @pytest.mark.parametrize(
        "held,required",
        [
            ("approve:StoreTransfer", APPROVE_TRANSFER_PERMISSIONS),
            ("manage:StoreTransfer", APPROVE_TRANSFER_PERMISSIONS),
            ("receive:StoreTransfer", RECEIVE_TRANSFER_PERMISSIONS),
            ("manage:StoreTransfer", RECEIVE_TRANSFER_PERMISSIONS),
            ("transfer:StoreTransfer", EXECUTE_TRANSFER_PERMISSIONS),
            ("manage:all", EXECUTE_TRANSFER_PERMISSIONS),
        ],
    )
    def test_any_required_permission_allows(self, held, required):
        assert evaluate_store_access(grants(held), STORE, required).allowed

    @pytest.mark.parametrize(
        "held,required",
        [
            ("read:StoreInventory", APPROVE_TRANSFER_PERMISSIONS),
            ("receive:StoreTransfer", APPROVE_TRANSFER_PERMISSIONS),
            ("approve:StoreTransfer", RECEIVE_TRANSFER_PERMISSIONS),
            ("receive:StoreTransfer", EXECUTE_TRANSFER_PERMISSIONS),
        ],
    )
    def test_wrong_permission_denied(self, held, required):
        decision = evaluate_store_access(grants(held), STORE, required)
        assert not decision.allowed
        assert "lacks any of" in decision.reason

    def test_manage_all_is_the_global_permission(self):
        assert str(MANAGE_ALL) == "manage:all"
