import pytest

from app.utils.timeutils import today


@pytest.fixture
def seller(make_user):
    return make_user("seller")


@pytest.fixture
def seller_headers(seller, auth_headers):
    return auth_headers(seller)


@pytest.fixture
def rental(seller, make_user, make_product, make_order):
    return make_order(make_user(), make_product(seller))


def test_other_sellers_order_is_forbidden(client, rental, make_user, auth_headers):
    headers = auth_headers(make_user("seller"))

    response = client.get(f"/api/seller-orders/{rental.id}", headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "This order does not belong to you"

    response = client.put(
        f"/api/seller-orders/{rental.id}/delivery-status", json={"status": "accepted"}, headers=headers,
    )
    assert response.status_code == 403
    response = client.post(f"/api/seller-orders/{rental.id}/cancel", json={"reason": "No stock"}, headers=headers)
    assert response.status_code == 403


def test_buyer_cannot_use_seller_routes(client, rental, make_user, auth_headers):
    response = client.get(f"/api/seller-orders/{rental.id}", headers=auth_headers(make_user()))
    assert response.status_code == 403


def test_seller_return_settles_the_order(client, rental, seller_headers):
    url = f"/api/seller-orders/{rental.id}/delivery-status"
    assert client.put(url, json={"status": "delivered"}, headers=seller_headers).status_code == 200

    response = client.put(url, json={"status": "returned"}, headers=seller_headers)

    body = response.json()
    assert response.status_code == 200
    assert body["delivery_status"] == "returned"
    assert body["order_status"] == "completed"
    assert body["actual_return_date"] == today().isoformat()
    assert body["last_admin_action"] == "processed_return"


def test_seller_cannot_mark_damage_through_delivery_status(client, rental, seller_headers):
    response = client.put(
        f"/api/seller-orders/{rental.id}/delivery-status", json={"status": "returned_damaged"}, headers=seller_headers,
    )
    assert response.status_code == 422


def test_seller_reports_damage_after_return(client, rental, seller_headers):
    damage_url = f"/api/seller-orders/{rental.id}/damage"
    payload = {"description": "Zip torn at the back", "photos": ["https://img.test/zip.jpg"]}

    assert client.post(damage_url, json=payload, headers=seller_headers).status_code == 409

    url = f"/api/seller-orders/{rental.id}/delivery-status"
    client.put(url, json={"status": "delivered"}, headers=seller_headers)
    client.put(url, json={"status": "returned"}, headers=seller_headers)
    response = client.post(damage_url, json=payload, headers=seller_headers)

    body = response.json()
    assert response.status_code == 200
    assert body["damage_claim_status"] == "reported"
    assert body["delivery_status"] == "returned_damaged"
    assert body["damage_claim_photos"] == ["https://img.test/zip.jpg"]


def test_seller_cancel_sets_both_statuses(client, rental, seller_headers):
    url = f"/api/seller-orders/{rental.id}/cancel"
    assert client.post(url, json={"reason": ""}, headers=seller_headers).status_code == 422

    response = client.post(url, json={"reason": "Item damaged in storage"}, headers=seller_headers)

    assert response.json()["order_status"] == "cancelled"
    assert response.json()["delivery_status"] == "cancelled"


def test_seller_refund_deposit(client, rental, seller_headers):
    url = f"/api/seller-orders/{rental.id}/refund-deposit"
    response = client.post(url, json={"refund_amount": 250}, headers=seller_headers)
    assert response.status_code == 400

    response = client.post(url, json={"refund_amount": 50}, headers=seller_headers)
    assert response.status_code == 200
    assert response.json()["security_deposit_status"] == "partially_refunded"
    assert response.json()["security_deposit_refund_amount"] == 50
