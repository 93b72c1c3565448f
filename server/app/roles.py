from enum import Enum


class Role(str, Enum):
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"


class Action(str, Enum):
    CREATE_ITEM = "CREATE_ITEM"
    CREATE_ORDER = "CREATE_ORDER"
    UPDATE_ORDER_STATUS = "UPDATE_ORDER_STATUS"
    CREATE_RELEASE = "CREATE_RELEASE"
    SHIP_RELEASE = "SHIP_RELEASE"
    DELIVER_RELEASE = "DELIVER_RELEASE"
    DEDUCT_INVENTORY = "DEDUCT_INVENTORY"
    ADJUST_INVENTORY = "ADJUST_INVENTORY"
    MANAGE_USERS = "MANAGE_USERS"


ROLE_DEFINITIONS: list[tuple[Role, str, int]] = [
    (Role.OPERATOR, "Operator", 1),
    (Role.SUPERVISOR, "Supervisor", 2),
    (Role.MANAGER, "Manager", 3),
]

ROLE_LEVELS: dict[Role, int] = {role: level for role, _, level in ROLE_DEFINITIONS}

# Minimum role required for each mutating action.
ACTION_POLICY: dict[Action, Role] = {
    Action.CREATE_RELEASE: Role.OPERATOR,
    Action.SHIP_RELEASE: Role.OPERATOR,
    Action.DELIVER_RELEASE: Role.OPERATOR,
    Action.CREATE_ORDER: Role.SUPERVISOR,
    Action.CREATE_ITEM: Role.SUPERVISOR,
    Action.DEDUCT_INVENTORY: Role.SUPERVISOR,
    Action.ADJUST_INVENTORY: Role.SUPERVISOR,
    Action.UPDATE_ORDER_STATUS: Role.MANAGER,
    Action.MANAGE_USERS: Role.MANAGER,
}

ROLE_KEYS: list[str] = [role.value for role, _, _ in ROLE_DEFINITIONS]


def has_minimum_role(role: Role, required: Role) -> bool:
    return ROLE_LEVELS.get(role, 0) >= ROLE_LEVELS.get(required, 0)


def authorize(role: Role | str, action: Action | str) -> bool:
    try:
        role = Role(role)
        action = Action(action)
    except ValueError:
        return False
    required = ACTION_POLICY.get(action)
    if required is None:
        return False
    return has_minimum_role(role, required)
