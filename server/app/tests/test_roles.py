import pytest

from app.releases.service import RELEASE_STATUS_FLOW
from app.roles import ACTION_POLICY, Action, Role, authorize, has_minimum_role
from app.routers.releases import STATUS_ACTIONS


def test_every_action_has_a_policy_entry():
    assert set(ACTION_POLICY) == set(Action)


def test_every_release_status_maps_to_an_action():
    assert set(STATUS_ACTIONS) == set(RELEASE_STATUS_FLOW)
    assert STATUS_ACTIONS["PENDING"] is Action.CREATE_RELEASE
    assert STATUS_ACTIONS["SHIPPED"] is Action.SHIP_RELEASE
    assert STATUS_ACTIONS["DELIVERED"] is Action.DELIVER_RELEASE


@pytest.mark.parametrize(
    ("role", "action", "allowed"),
    [
        (Role.OPERATOR, Action.CREATE_RELEASE, True),
        (Role.OPERATOR, Action.SHIP_RELEASE, True),
        (Role.OPERATOR, Action.DELIVER_RELEASE, True),
        (Role.OPERATOR, Action.ADJUST_INVENTORY, False),
        (Role.OPERATOR, Action.CREATE_ORDER, False),
        (Role.SUPERVISOR, Action.ADJUST_INVENTORY, True),
        (Role.SUPERVISOR, Action.DEDUCT_INVENTORY, True),
        (Role.SUPERVISOR, Action.UPDATE_ORDER_STATUS, False),
        (Role.MANAGER, Action.UPDATE_ORDER_STATUS, True),
        (Role.MANAGER, Action.MANAGE_USERS, True),
    ],
)
def test_authorize_policy_table(role, action, allowed):
    assert authorize(role, action) is allowed


def test_authorize_accepts_stored_string_roles_and_rejects_unknown_values():
    assert authorize("SUPERVISOR", "CREATE_ITEM") is True
    assert authorize("GUEST", Action.CREATE_RELEASE) is False
    assert authorize(Role.MANAGER, "DROP_TABLES") is False


def test_role_levels_are_ordered():
    assert has_minimum_role(Role.MANAGER, Role.OPERATOR)
    assert not has_minimum_role(Role.OPERATOR, Role.SUPERVISOR)
