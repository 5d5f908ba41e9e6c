from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, InvalidTransition, ValidationError
from app.crud import admin as crud_admin
from app.crud import order as crud_order
from app.models.notification import NotificationOutbox
from app.models.order import Order
from app.models.user import User
from app.schemas.order import OrderCreate
from app.utils.timeutils import today


@pytest.fixture
def rental(make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    return make_order(buyer, product)


def test_create_rental_prices_from_product(db, make_user, make_product):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller, rental_price_per_day=150.0, security_deposit_percentage=10.0)
    start = today() + timedelta(days=3)

    order = crud_order.create_rental(db, buyer, OrderCreate(
        product_id=product.id, rental_start_date=start, rental_end_date=start + timedelta(days=4),
    ))

    assert order.rental_duration_days == 4
    assert order.total_rental_price == 600.0
    assert order.security_deposit == 60.0
    assert order.total_amount == 660.0
    assert order.commission_amount == 60.0
    assert order.order_status == "upcoming"
    events = {e.event for e in db.query(NotificationOutbox).all()}
    assert {"product_booked", "rental_confirmed", "rental_order_placed"} <= events


def test_create_rental_refuses_overlap(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    existing = make_order(make_user(), product)

    with pytest.raises(ConflictError):
        crud_order.create_rental(db, buyer, OrderCreate(
            product_id=product.id,
            rental_start_date=existing.rental_end_date,
            rental_end_date=existing.rental_end_date + timedelta(days=2),
        ))


def test_same_status_is_idempotent(db, rental):
    crud_order.update_delivery_status(db, rental.id, "accepted")
    version = db.get(Order, rental.id).version
    order = crud_order.update_delivery_status(db, rental.id, "accepted")
    assert order.version == version


def test_update_order_status_rejects_unknown_value(db, rental):
    with pytest.raises(ValidationError, match="Must be one of"):
        crud_order.update_order_status(db, rental.id, "returned_damaged")


def test_admin_cancel_through_status_endpoint(db, rental):
    order = crud_order.update_order_status(db, rental.id, "cancelled", actor_id=1)
    assert order.order_status == "cancelled"
    assert order.delivery_status == "cancelled"
    with pytest.raises(InvalidTransition):
        crud_order.update_delivery_status(db, rental.id, "picked")


def test_partial_refund_bounds(db, rental):
    with pytest.raises(ValidationError, match="exceed"):
        crud_order.process_security_deposit(db, rental.id, "partially_refunded", 500)
    with pytest.raises(ValidationError):
        crud_order.process_security_deposit(db, rental.id, "partially_refunded", 0)

    order = crud_order.process_security_deposit(db, rental.id, "partially_refunded", 150)
    assert order.security_deposit_status == "partially_refunded"
    assert order.security_deposit_refund_amount == 150


def test_commission_bounds(db, rental):
    with pytest.raises(ValidationError):
        crud_admin.update_platform_commission(db, rental.product_id, 150)
    assert crud_admin.update_platform_commission(db, rental.product_id, 0).commission_percentage == 0
    assert crud_admin.update_platform_commission(db, rental.product_id, 100).commission_percentage == 100


def test_late_return_computes_fee(db, rental):
    crud_order.update_delivery_status(db, rental.id, "delivered")
    order = crud_order.process_return(db, rental.id, rental.expected_return_date + timedelta(days=3))

    assert order.delivery_status == "returned"
    assert order.order_status == "late"
    assert order.is_late_return is True
    # 1000 over 10 days, 10% of the daily rate per late day
    assert order.late_fee == 30.0


def test_on_time_return_completes(db, rental):
    crud_order.update_delivery_status(db, rental.id, "delivered")
    order = crud_order.process_return(db, rental.id, rental.expected_return_date)
    assert order.order_status == "completed"
    assert order.late_fee == 0.0


def test_apply_late_fee_accumulates(db, rental):
    crud_order.apply_late_fee(db, rental.id, 25)
    order = crud_order.apply_late_fee(db, rental.id, 15.5)
    assert order.late_fee == 40.5
    assert order.last_admin_action == "apply_late_fee"
    with pytest.raises(ValidationError):
        crud_order.apply_late_fee(db, rental.id, 0)


def test_damage_only_after_return(db, rental):
    with pytest.raises(ConflictError):
        crud_order.report_damage(db, rental.id, "torn sleeve", [])

    crud_order.update_delivery_status(db, rental.id, "delivered")
    crud_order.process_return(db, rental.id, rental.expected_return_date)
    order = crud_order.report_damage(db, rental.id, "torn sleeve", ["https://img.test/1.jpg"])
    assert order.damage_claim_status == "reported"
    assert order.delivery_status == "returned_damaged"

    with pytest.raises(ValidationError):
        crud_order.handle_damage_claim(db, rental.id, "approve", None)
    order = crud_order.handle_damage_claim(db, rental.id, "approve", 120)
    assert order.damage_fee == 120


def test_extend_rental_reprices(db, rental):
    user = db.get(User, rental.buyer_id)
    order = crud_order.extend_rental(db, rental.id, rental.rental_end_date + timedelta(days=2), user)
    assert order.rental_duration_days == 12
    assert order.total_rental_price == 1200.0
    assert order.total_amount == 1400.0


def test_cancel_requires_reason(db, rental):
    with pytest.raises(ValidationError):
        crud_order.cancel_rental(db, rental.id, "  ")


def test_stale_order_write_is_refused(db, rental):
    order = db.get(Order, rental.id)
    # another writer bumps the row behind this session's back
    db.execute(
        update(Order).where(Order.id == rental.id).values(version=Order.version + 1),
        execution_options={"synchronize_session": False},
    )
    order.admin_notes = "late edit"
    with pytest.raises(StaleDataError):
        db.flush()
    db.rollback()
