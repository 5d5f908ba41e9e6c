# app/services/order_lifecycle.py
"""
Order lifecycle rules.

Every write to one of the order's status columns goes through
``transition``, which checks the move against the tables below. Writing a
status equal to the current one is always allowed and changes nothing.

``lifecycle_state`` folds the five status columns into the single state a
buyer or admin actually cares about.
"""

from datetime import date
from typing import Dict, FrozenSet, Optional

from app.core.config import settings
from app.core.exceptions import InvalidTransition, ValidationError
from app.models.order import (
    DamageClaimStatus,
    DeliveryStatus,
    DepositStatus,
    Order,
    OrderStatus,
    PaymentStatus,
)

S = OrderStatus
D = DeliveryStatus
P = PaymentStatus
C = DamageClaimStatus
H = DepositStatus

ORDER_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.upcoming.value: frozenset({S.ongoing.value, S.late.value, S.completed.value, S.cancelled.value}),
    S.ongoing.value: frozenset({S.completed.value, S.late.value, S.cancelled.value}),
    S.late.value: frozenset({S.completed.value}),
    S.completed.value: frozenset(),
    S.cancelled.value: frozenset(),
}

_DELIVERY_FLOW = [
    D.pending.value,
    D.accepted.value,
    D.out_for_pickup.value,
    D.picked.value,
    D.delivered.value,
]


def _build_delivery_transitions() -> Dict[str, FrozenSet[str]]:
    table = {}
    for i, current in enumerate(_DELIVERY_FLOW):
        targets = set(_DELIVERY_FLOW[i + 1:])
        targets.add(D.cancelled.value)
        if current == D.delivered.value:
            targets.update({D.returned.value, D.returned_damaged.value})
        table[current] = frozenset(targets)
    # a cancelled assignment hands the order back to the queue
    table[D.accepted.value] = table[D.accepted.value] | {D.pending.value}
    table[D.returned.value] = frozenset({D.returned_damaged.value})
    table[D.returned_damaged.value] = frozenset()
    table[D.cancelled.value] = frozenset()
    return table


DELIVERY_TRANSITIONS = _build_delivery_transitions()

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    P.pending.value: frozenset({P.processing.value, P.completed.value}),
    P.processing.value: frozenset({P.completed.value}),
    P.completed.value: frozenset(),
}

DAMAGE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    C.none.value: frozenset({C.reported.value}),
    C.reported.value: frozenset({C.approved.value, C.rejected.value}),
    C.approved.value: frozenset(),
    C.rejected.value: frozenset(),
}

DEPOSIT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    H.held.value: frozenset({H.release.value, H.partially_refunded.value, H.forfeited.value}),
    H.release.value: frozenset(),
    H.partially_refunded.value: frozenset(),
    H.forfeited.value: frozenset(),
}

TRANSITIONS = {
    "order_status": ORDER_TRANSITIONS,
    "delivery_status": DELIVERY_TRANSITIONS,
    "payment_status": PAYMENT_TRANSITIONS,
    "damage_claim_status": DAMAGE_TRANSITIONS,
    "security_deposit_status": DEPOSIT_TRANSITIONS,
}

# Orders in these states hold the product for their rental window
BLOCKING_ORDER_STATUSES = (S.upcoming.value, S.ongoing.value)

# The seven delivery values the admin status endpoint accepts
ADMIN_STATUS_VALUES = (
    D.pending.value,
    D.accepted.value,
    D.out_for_pickup.value,
    D.picked.value,
    D.delivered.value,
    D.returned.value,
    D.cancelled.value,
)


def can_transition(field: str, current: str, target: str) -> bool:
    if current == target:
        return True
    return target in TRANSITIONS[field].get(current, frozenset())


def transition(order: Order, field: str, target: str) -> bool:
    """Set ``order.<field>`` to ``target``. Returns False when it was already there."""
    table = TRANSITIONS[field]
    if target not in table:
        raise ValidationError(f"Invalid {field.replace('_', ' ')}: {target}")

    current = getattr(order, field)
    if current == target:
        return False
    if not can_transition(field, current, target):
        raise InvalidTransition(field, current, target)

    setattr(order, field, target)

    # Handing the item over starts the rental
    if field == "delivery_status" and target == D.delivered.value \
            and order.order_status == S.upcoming.value:
        order.order_status = S.ongoing.value
    return True


def ensure_cancellable(order: Order) -> None:
    if not can_transition("order_status", order.order_status, S.cancelled.value):
        raise InvalidTransition("order_status", order.order_status, S.cancelled.value)


def calculate_late_fee(
    total_rental_price: float,
    rental_duration_days: int,
    days_late: int,
    rate: Optional[float] = None,
) -> float:
    """``days_late`` times the rate (10% by default) of the effective daily price."""
    if days_late <= 0 or rental_duration_days <= 0:
        return 0.0
    rate = settings.LATE_FEE_RATE if rate is None else rate
    daily_rate = total_rental_price / rental_duration_days
    return round(days_late * daily_rate * rate, 2)


def days_late(expected_return_date: date, return_date: date) -> int:
    return max((return_date - expected_return_date).days, 0)


def lifecycle_state(order: Order) -> str:
    """Single read-only view over the status columns.

    One of upcoming, ongoing, returned, returned_late, disputed, completed,
    cancelled.
    """
    if order.order_status == S.cancelled.value:
        return "cancelled"
    if order.damage_claim_status == C.reported.value:
        return "disputed"
    if order.order_status == S.completed.value:
        return "completed"
    if order.delivery_status in (D.returned.value, D.returned_damaged.value):
        return "returned_late" if order.is_late_return else "returned"
    if order.order_status in (S.ongoing.value, S.late.value):
        return "ongoing"
    return "upcoming"
