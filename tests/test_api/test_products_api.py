import io
import json

from PIL import Image

from app.core.config import settings

FORM = {
    "title": "Bridal Lehenga",
    "category": "formal_wear",
    "rental_price_per_day": "450",
    "security_deposit_percentage": "25",
}


def _png(color=(200, 30, 60)):
    buf = io.BytesIO()
    Image.new("RGBA", (64, 48), color + (255,)).save(buf, format="PNG")
    return buf.getvalue()


def _create(client, headers, images=None, **fields):
    files = [("images", (name, body, "image/png")) for name, body in (images or [])]
    return client.post("/api/products/", data={**FORM, **fields}, files=files or None, headers=headers)


def test_seller_creates_product_with_images(client, storage, make_user, auth_headers):
    seller = make_user("seller")
    response = _create(client, auth_headers(seller), images=[("front.png", _png()), ("back.png", _png())])

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Bridal Lehenga"
    assert body["rental_price_per_day"] == 450.0
    assert len(body["image_urls"]) == 2
    stored = [k for (bucket, k) in storage.objects if bucket == settings.PRODUCT_IMAGE_BUCKET_NAME]
    assert all(k.startswith(f"sellers/{seller.id}/products/") and k.endswith(".jpg") for k in stored)


def test_buyer_cannot_list_products(client, make_user, auth_headers):
    assert _create(client, auth_headers(make_user())).status_code == 403


def test_bad_fields_are_rejected(client, make_user, auth_headers):
    response = _create(client, auth_headers(make_user("seller")), category="furniture")
    assert response.status_code == 400


def test_non_image_upload_is_rejected(client, make_user, auth_headers):
    response = _create(client, auth_headers(make_user("seller")), images=[("notes.png", b"plain text")])
    assert response.status_code == 400
    assert "not a valid image" in response.json()["detail"]


def test_public_listing_and_filters(client, make_user, make_product):
    seller = make_user("seller")
    make_product(seller, title="Gold Necklace", category="jewelry", rental_price_per_day=300.0)
    make_product(seller, title="Pirate Costume", category="costumes", rental_price_per_day=80.0)
    make_product(seller, title="Hidden Gown", moderation_status="hidden")

    body = client.get("/api/products/?sort=price_asc").json()
    assert [p["title"] for p in body["items"]] == ["Pirate Costume", "Gold Necklace"]

    body = client.get("/api/products/category/jewelry").json()
    assert [p["title"] for p in body["items"]] == ["Gold Necklace"]

    body = client.get("/api/products/search?q=pirate").json()
    assert body["total"] == 1


def test_empty_search_term(client):
    assert client.get("/api/products/search?q=%20").status_code == 400


def test_update_keeps_selected_images(client, make_user, make_product, auth_headers):
    seller = make_user("seller")
    product = make_product(seller, image_keys=["a.jpg", "b.jpg"])

    response = client.put(
        f"/api/products/{product.id}",
        data={"rental_price_per_day": "120", "keep_image_keys": json.dumps(["b.jpg"])},
        headers=auth_headers(seller),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["rental_price_per_day"] == 120.0
    assert body["title"] == "Velvet Sherwani"
    assert len(body["image_urls"]) == 1
    assert body["image_urls"][0].endswith("/b.jpg")


def test_only_owner_updates(client, make_user, make_product, auth_headers):
    product = make_product(make_user("seller"))
    response = client.put(
        f"/api/products/{product.id}", data={"title": "Stolen"}, headers=auth_headers(make_user("seller")),
    )
    assert response.status_code == 403


def test_delete_with_rental_history_conflicts(client, make_user, make_product, make_order, auth_headers):
    seller = make_user("seller")
    product = make_product(seller)
    make_order(make_user(), product)
    assert client.delete(f"/api/products/{product.id}", headers=auth_headers(seller)).status_code == 409


def test_delete_removes_stored_images(client, storage, make_user, make_product, auth_headers):
    seller = make_user("seller")
    storage.objects[(settings.PRODUCT_IMAGE_BUCKET_NAME, "a.jpg")] = b"x"
    product = make_product(seller, image_keys=["a.jpg"])

    response = client.delete(f"/api/products/{product.id}", headers=auth_headers(seller))

    assert response.status_code == 200
    assert storage.objects == {}
    assert client.get(f"/api/products/{product.id}").status_code == 404
