from datetime import timedelta

import pytest

from app.crud.cart import check_product_availability
from app.models.order import DeliveryAssignment


@pytest.fixture
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user("admin"))


@pytest.fixture
def rental(make_user, make_product, make_order):
    return make_order(make_user(), make_product(make_user("seller")))


def test_non_admin_is_refused(client, make_user, auth_headers):
    response = client.get("/api/admin/orders", headers=auth_headers(make_user("seller")))
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"


def test_status_endpoint_accepts_delivery_values(client, rental, admin_headers):
    response = client.put(f"/api/admin/orders/{rental.id}/status", json={"status": "picked"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["delivery_status"] == "picked"
    assert response.json()["last_admin_action"] == "delivery_status:picked"

    response = client.put(f"/api/admin/orders/{rental.id}/status", json={"status": "pending"}, headers=admin_headers)
    assert response.status_code == 409


def test_status_endpoint_rejects_unknown_value(client, rental, admin_headers):
    response = client.put(f"/api/admin/orders/{rental.id}/status", json={"status": "lost"}, headers=admin_headers)
    assert response.status_code == 400
    assert "Must be one of" in response.json()["detail"]


def test_missing_order(client, admin_headers):
    response = client.get("/api/admin/orders/4242", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Order 4242 not found"


def test_late_fee_and_return(client, rental, admin_headers):
    client.put(f"/api/admin/orders/{rental.id}/status", json={"status": "delivered"}, headers=admin_headers)
    late = (rental.expected_return_date + timedelta(days=2)).isoformat()

    response = client.post(f"/api/admin/orders/{rental.id}/return", json={"return_date": late}, headers=admin_headers)

    body = response.json()
    assert body["order_status"] == "late"
    assert body["late_fee"] == 20.0

    response = client.post(f"/api/admin/orders/{rental.id}/late-fee", json={"amount": 5}, headers=admin_headers)
    assert response.json()["late_fee"] == 25.0


def test_security_deposit_release(client, rental, admin_headers):
    response = client.post(
        f"/api/admin/orders/{rental.id}/security-deposit", json={"action": "release"}, headers=admin_headers,
    )
    assert response.json()["security_deposit_status"] == "release"
    assert response.json()["security_deposit_refund_amount"] == 200.0

    response = client.post(
        f"/api/admin/orders/{rental.id}/security-deposit", json={"action": "forfeited"}, headers=admin_headers,
    )
    assert response.status_code == 409


def test_commission_update_bounds(client, rental, admin_headers):
    url = f"/api/admin/products/{rental.product_id}/commission"
    assert client.put(url, json={"commission_percentage": 150}, headers=admin_headers).status_code == 400
    response = client.put(url, json={"commission_percentage": 12.5}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["commission_percentage"] == 12.5


def test_assign_delivery(client, db, rental, make_user, admin_headers):
    partner = make_user("delivery_partner")
    response = client.post(
        f"/api/admin/orders/{rental.id}/assign-delivery",
        json={"delivery_partner_id": partner.id},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "assigned"

    buyer_as_partner = client.post(
        f"/api/admin/orders/{rental.id}/assign-delivery",
        json={"delivery_partner_id": rental.buyer_id},
        headers=admin_headers,
    )
    assert buyer_as_partner.status_code == 400

    order = client.get(f"/api/admin/orders/{rental.id}", headers=admin_headers).json()
    assert order["delivery_partner_id"] == partner.id
    assert order["delivery_status"] == "accepted"
    assert db.query(DeliveryAssignment).count() == 1


def test_promo_code_management(client, admin_headers):
    payload = {"code": "fest20", "discount_type": "percentage", "discount_value": 20}
    response = client.post("/api/admin/promo-codes", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["code"] == "FEST20"
    assert client.post("/api/admin/promo-codes", json=payload, headers=admin_headers).status_code == 409


def test_dispatch_outbox(client, make_user, admin_headers, email):
    make_user()
    client.post(
        "/auth/signup",
        json={"email": "new@example.com", "password": "Str0ng!pass", "full_name": "New Buyer"},
    )

    response = client.post("/api/admin/notifications/dispatch", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["sent"] == 2
    assert email.sent[0]["to"] == "new@example.com"


def test_cancelling_through_delivery_status_frees_the_dates(client, db, rental, admin_headers):
    response = client.put(
        f"/api/admin/orders/{rental.id}/delivery-status", json={"status": "cancelled"}, headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["order_status"] == "cancelled"
    assert response.json()["delivery_status"] == "cancelled"

    db.expire_all()
    available, _ = check_product_availability(db, rental.product_id, rental.rental_start_date, rental.rental_end_date)
    assert available is True
