from datetime import date, timedelta

import pytest

from app.core.exceptions import ConflictError, ValidationError
from app.crud import cart as crud_cart
from app.crud import order as crud_order
from app.schemas.cart import CartAdd
from app.schemas.order import OrderCreate
from app.utils.timeutils import today


def test_overlap_is_inclusive_on_both_ends():
    assert crud_cart.date_ranges_overlap(date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 5), date(2024, 1, 8))
    assert not crud_cart.date_ranges_overlap(date(2024, 1, 1), date(2024, 1, 4), date(2024, 1, 5), date(2024, 1, 8))


def test_booked_dates_block_availability(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    order = make_order(buyer, product, days=5)

    available, reason = crud_cart.check_product_availability(
        db, product.id, order.rental_end_date, order.rental_end_date + timedelta(days=3)
    )
    assert available is False
    assert "already booked" in reason

    available, _ = crud_cart.check_product_availability(
        db, product.id, order.rental_end_date + timedelta(days=1), order.rental_end_date + timedelta(days=3)
    )
    assert available is True


def test_cancelled_and_completed_orders_free_the_dates(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    first = make_order(buyer, product, order_status="cancelled")
    make_order(buyer, product, start=first.rental_start_date, order_status="completed")

    available, _ = crud_cart.check_product_availability(db, product.id, first.rental_start_date, first.rental_end_date)
    assert available is True


def test_extension_ignores_its_own_order(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    order = make_order(buyer, product)
    available, _ = crud_cart.check_product_availability(
        db, product.id, order.rental_start_date, order.rental_end_date, exclude_order_id=order.id
    )
    assert available is True


def test_hidden_product_is_unavailable(db, make_user, make_product):
    product = make_product(make_user("seller"), availability_status="unavailable")
    available, reason = crud_cart.check_product_availability(db, product.id, today(), today() + timedelta(days=2))
    assert available is False
    assert reason == "Product is not available for rent"


def test_add_to_cart_rules(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    start = today() + timedelta(days=2)
    data = CartAdd(product_id=product.id, rental_start_date=start, rental_end_date=start + timedelta(days=3))

    with pytest.raises(ValidationError, match="own product"):
        crud_cart.add_to_cart(db, seller, data)

    item = crud_cart.add_to_cart(db, buyer, data)
    assert item.product_id == product.id
    with pytest.raises(ConflictError, match="already in your cart"):
        crud_cart.add_to_cart(db, buyer, data)

    other = make_user()
    make_order(buyer, product, start=start, days=2)
    with pytest.raises(ConflictError, match="already booked"):
        crud_cart.add_to_cart(db, other, data)


@pytest.mark.parametrize("moderation_status", ["hidden", "rejected"])
def test_moderated_product_cannot_be_booked(db, make_user, make_product, moderation_status):
    product = make_product(make_user("seller"), moderation_status=moderation_status)
    start = today() + timedelta(days=2)

    available, reason = crud_cart.check_product_availability(db, product.id, start, start + timedelta(days=2))
    assert available is False
    assert reason == "Product is not available for rent"

    with pytest.raises(ConflictError):
        crud_order.create_rental(db, make_user(), OrderCreate(
            product_id=product.id, rental_start_date=start, rental_end_date=start + timedelta(days=2),
        ))
