from datetime import timedelta

from sqlalchemy import text

from app.crud import order as crud_order
from app.models.order import Order
from app.utils.timeutils import today


def _booking(product, start=None, days=3, **extra):
    start = start or today() + timedelta(days=2)
    return {
        "product_id": product.id,
        "rental_start_date": start.isoformat(),
        "rental_end_date": (start + timedelta(days=days)).isoformat(),
        **extra,
    }


def test_book_rental(client, make_user, make_product, auth_headers):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)

    response = client.post("/api/orders/", json=_booking(product), headers=auth_headers(buyer))

    assert response.status_code == 201
    body = response.json()
    assert body["total_rental_price"] == 300.0
    assert body["security_deposit"] == 60.0
    assert body["total_amount"] == 360.0
    assert body["order_status"] == "upcoming"
    assert body["delivery_status"] == "pending"


def test_client_cannot_set_price(client, make_user, make_product, auth_headers):
    product = make_product(make_user("seller"))
    response = client.post(
        "/api/orders/", json=_booking(product, total_amount=1), headers=auth_headers(make_user()),
    )
    assert response.json()["total_amount"] == 360.0


def test_double_booking_conflicts(client, make_user, make_product, auth_headers):
    product = make_product(make_user("seller"))
    payload = _booking(product)
    assert client.post("/api/orders/", json=payload, headers=auth_headers(make_user())).status_code == 201

    response = client.post("/api/orders/", json=payload, headers=auth_headers(make_user()))
    assert response.status_code == 409
    assert response.json()["detail"] == "Product is already booked for the selected dates"


def test_end_before_start_is_rejected(client, make_user, make_product, auth_headers):
    product = make_product(make_user("seller"))
    payload = _booking(product)
    payload["rental_end_date"] = payload["rental_start_date"]
    assert client.post("/api/orders/", json=payload, headers=auth_headers(make_user())).status_code == 422


def test_past_start_is_rejected(client, make_user, make_product, auth_headers):
    product = make_product(make_user("seller"))
    payload = _booking(product, start=today() - timedelta(days=1))
    response = client.post("/api/orders/", json=payload, headers=auth_headers(make_user()))
    assert response.status_code == 400


def test_unknown_product(client, make_user, auth_headers):
    response = client.post(
        "/api/orders/",
        json={"product_id": 999, "rental_start_date": "2999-01-01", "rental_end_date": "2999-01-03"},
        headers=auth_headers(make_user()),
    )
    assert response.status_code == 404


def test_my_orders_are_paginated(client, make_user, make_product, make_order, auth_headers):
    buyer = make_user()
    product = make_product(make_user("seller"))
    for i in range(3):
        make_order(buyer, product, start=today() + timedelta(days=20 * (i + 1)))

    response = client.get("/api/orders/mine?page=1&limit=2", headers=auth_headers(buyer))

    body = response.json()
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert len(body["items"]) == 2


def test_strangers_cannot_read_an_order(client, make_user, make_product, make_order, auth_headers):
    order = make_order(make_user(), make_product(make_user("seller")))
    response = client.get(f"/api/orders/{order.id}", headers=auth_headers(make_user()))
    assert response.status_code == 403


def test_buyer_cancels_upcoming_order(client, db, make_user, make_product, make_order, auth_headers):
    buyer = make_user()
    order = make_order(buyer, make_product(make_user("seller")))

    response = client.post(
        f"/api/orders/{order.id}/cancel", json={"reason": "Event postponed"}, headers=auth_headers(buyer),
    )

    assert response.status_code == 200
    assert response.json()["order_status"] == "cancelled"
    again = client.post(
        f"/api/orders/{order.id}/cancel", json={"reason": "Event postponed"}, headers=auth_headers(buyer),
    )
    assert again.status_code == 409


def test_extend_rental(client, make_user, make_product, make_order, auth_headers):
    buyer = make_user()
    order = make_order(buyer, make_product(make_user("seller")), days=2)
    new_end = order.rental_end_date + timedelta(days=1)

    response = client.post(
        f"/api/orders/{order.id}/extend", json={"new_end_date": new_end.isoformat()}, headers=auth_headers(buyer),
    )

    assert response.status_code == 200
    assert response.json()["rental_duration_days"] == 3
    assert response.json()["total_rental_price"] == 300.0


def test_concurrent_change_returns_conflict(client, db, monkeypatch, make_user, make_product, make_order,
                                            auth_headers):
    buyer = make_user()
    order = make_order(buyer, make_product(make_user("seller")))
    save = crud_order._save

    def racing_save(session, target):
        # another request commits a change to the same row first
        session.connection().execute(
            text("UPDATE orders SET version = version + 1 WHERE id = :id"), {"id": target.id},
        )
        return save(session, target)

    monkeypatch.setattr(crud_order, "_save", racing_save)
    response = client.post(
        f"/api/orders/{order.id}/cancel", json={"reason": "Event postponed"}, headers=auth_headers(buyer),
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "The record was modified by another request, reload and retry"
    db.expire_all()
    assert db.get(Order, order.id).order_status == "upcoming"
