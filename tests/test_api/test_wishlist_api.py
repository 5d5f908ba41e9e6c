def test_wishlist_rejects_duplicates(client, make_user, make_product, auth_headers):
    headers = auth_headers(make_user())
    product = make_product(make_user("seller"))

    assert client.post("/api/wishlist/", json={"product_id": product.id}, headers=headers).status_code == 201
    response = client.post("/api/wishlist/", json={"product_id": product.id}, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Product is already in your wishlist"
    assert client.post("/api/wishlist/", json={"product_id": 999}, headers=headers).status_code == 404


def test_wishlist_status_and_remove(client, make_user, make_product, auth_headers):
    headers = auth_headers(make_user())
    product = make_product(make_user("seller"))
    client.post("/api/wishlist/", json={"product_id": product.id}, headers=headers)

    response = client.get("/api/wishlist/", headers=headers)
    assert response.json()["items"][0]["product"]["id"] == product.id

    assert client.delete(f"/api/wishlist/{product.id}", headers=headers).status_code == 200
    assert client.delete(f"/api/wishlist/{product.id}", headers=headers).status_code == 404
