"""
Order lifecycle state machine.

``TRANSITIONS`` maps a current status to the statuses it may move to and the
roles allowed to trigger each move. Customers may only cancel their own
pending orders; the ownership check is done by the caller.
"""
from storefront.core.exceptions import StateError
from storefront.models.order_models import OrderStatus
from storefront.models.user_models import ROLE_ADMIN, ROLE_CUSTOMER

ADMIN_ONLY = frozenset({ROLE_ADMIN})
ANY_ROLE = frozenset({ROLE_ADMIN, ROLE_CUSTOMER})

TRANSITIONS: dict[OrderStatus, dict[OrderStatus, frozenset]] = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING: ADMIN_ONLY,
        OrderStatus.CANCELLED: ANY_ROLE,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED: ADMIN_ONLY,
        OrderStatus.CANCELLED: ADMIN_ONLY,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED: ADMIN_ONLY,
        OrderStatus.CANCELLED: ADMIN_ONLY,
    },
    OrderStatus.DELIVERED: {},
    OrderStatus.CANCELLED: {},
}

TERMINAL_STATES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATES


def allowed_targets(current: OrderStatus, role: str) -> list[OrderStatus]:
    role = (role or "").lower()
    return [
        target
        for target, roles in TRANSITIONS[OrderStatus(current)].items()
        if role in roles
    ]


def can_transition(current: OrderStatus, target: OrderStatus, role: str) -> bool:
    roles = TRANSITIONS[OrderStatus(current)].get(OrderStatus(target))
    return roles is not None and (role or "").lower() in roles


def ensure_transition(current: OrderStatus, target: OrderStatus, role: str) -> None:
    current, target = OrderStatus(current), OrderStatus(target)
    if not can_transition(current, target, role):
        raise StateError(
            f"Cannot change order status from '{current.value}' to '{target.value}' as {role}",
            code="INVALID_TRANSITION",
        )
