from datetime import date

import pytest

from app.core.exceptions import InvalidTransition, ValidationError
from app.models.order import Order
from app.services import order_lifecycle as lifecycle


def _order(**fields):
    values = {
        "order_status": "upcoming",
        "delivery_status": "pending",
        "payment_status": "pending",
        "damage_claim_status": "none",
        "security_deposit_status": "held",
        "is_late_return": False,
    }
    values.update(fields)
    return Order(**values)


def test_late_fee_is_ten_percent_of_daily_rate_per_day():
    assert lifecycle.calculate_late_fee(1000, 10, 3) == 30.0


def test_late_fee_is_zero_when_on_time():
    assert lifecycle.calculate_late_fee(1000, 10, 0) == 0.0
    assert lifecycle.days_late(date(2024, 5, 10), date(2024, 5, 9)) == 0


def test_days_late_counts_calendar_days():
    assert lifecycle.days_late(date(2024, 5, 10), date(2024, 5, 13)) == 3


def test_same_state_write_is_a_noop():
    order = _order(delivery_status="picked")
    assert lifecycle.transition(order, "delivery_status", "picked") is False
    assert order.delivery_status == "picked"


def test_forward_delivery_transition():
    order = _order()
    assert lifecycle.transition(order, "delivery_status", "accepted") is True
    assert order.delivery_status == "accepted"


def test_delivered_starts_the_rental():
    order = _order(delivery_status="picked")
    lifecycle.transition(order, "delivery_status", "delivered")
    assert order.order_status == "ongoing"


def test_backward_delivery_transition_rejected():
    order = _order(delivery_status="delivered")
    with pytest.raises(InvalidTransition):
        lifecycle.transition(order, "delivery_status", "picked")


def test_unknown_status_rejected():
    with pytest.raises(ValidationError):
        lifecycle.transition(_order(), "delivery_status", "teleported")


def test_terminal_order_status_cannot_be_cancelled():
    with pytest.raises(InvalidTransition):
        lifecycle.ensure_cancellable(_order(order_status="completed"))


def test_damage_claim_flow():
    order = _order(delivery_status="returned")
    lifecycle.transition(order, "damage_claim_status", "reported")
    lifecycle.transition(order, "damage_claim_status", "approved")
    with pytest.raises(InvalidTransition):
        lifecycle.transition(order, "damage_claim_status", "rejected")


def test_lifecycle_state_reports_disputes():
    order = _order(delivery_status="returned_damaged", damage_claim_status="reported")
    assert lifecycle.lifecycle_state(order) == "disputed"
