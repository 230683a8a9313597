from tests.conftest import bearer


def test_empty_cart(client, user_token):
    res = client.get("/api/cart", headers=bearer(user_token))
    assert res.status_code == 200
    assert res.json()["items"] == []
    assert res.json()["summary"]["total"] == 0


def test_cart_requires_auth(client):
    assert client.get("/api/cart").status_code == 401


def test_same_product_and_size_increments_quantity(client, user_token, make_product):
    product = make_product(price=1000, sizes=["S", "M"])
    headers = bearer(user_token)
    client.post("/api/cart", json={"product_id": product["id"], "quantity": 1, "size": "M"}, headers=headers)
    res = client.post("/api/cart", json={"product_id": product["id"], "quantity": 1, "size": "M"}, headers=headers)
    assert res.status_code == 201
    items = res.json()["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 2
    assert items[0]["product"]["id"] == product["id"]

    summary = res.json()["summary"]
    assert summary == {"subtotal": 2000, "shipping": 0, "tax": 360, "total": 2360, "total_items": 2}


def test_different_size_is_a_new_line(client, user_token, make_product):
    product = make_product(price=300)
    headers = bearer(user_token)
    client.post("/api/cart", json={"product_id": product["id"], "size": "S"}, headers=headers)
    res = client.post("/api/cart", json={"product_id": product["id"], "size": "L"}, headers=headers)
    body = res.json()
    assert len(body["items"]) == 2
    assert body["summary"]["subtotal"] == 600
    assert body["summary"]["shipping"] == 49


def test_add_rejects_unknown_product_and_bad_quantity(client, user_token, make_product):
    headers = bearer(user_token)
    res = client.post("/api/cart", json={"product_id": "0123456789abcdef01234567"}, headers=headers)
    assert res.status_code == 404
    product = make_product()
    res = client.post("/api/cart", json={"product_id": product["id"], "quantity": 0}, headers=headers)
    assert res.status_code == 400


def test_update_and_remove_line(client, user_token, make_product):
    product = make_product(price=100)
    headers = bearer(user_token)
    line_id = client.post("/api/cart", json={"product_id": product["id"]}, headers=headers).json()["items"][0]["id"]

    res = client.put(f"/api/cart/item/{line_id}", json={"quantity": 5}, headers=headers)
    assert res.status_code == 200
    assert res.json()["items"][0]["quantity"] == 5
    assert res.json()["summary"]["subtotal"] == 500

    assert client.put(f"/api/cart/item/{line_id}", json={"quantity": 0}, headers=headers).status_code == 400
    assert client.put("/api/cart/item/nope", json={"quantity": 2}, headers=headers).status_code == 404

    res = client.delete(f"/api/cart/item/{line_id}", headers=headers)
    assert res.status_code == 200
    assert res.json()["items"] == []
    assert client.delete(f"/api/cart/item/{line_id}", headers=headers).status_code == 404


def test_update_without_cart_is_404(client, user_token):
    res = client.put("/api/cart/item/abc", json={"quantity": 2}, headers=bearer(user_token))
    assert res.status_code == 404
    assert res.json()["message"] == "Cart not found"


def test_clear_cart(client, user_token, make_product):
    product = make_product()
    headers = bearer(user_token)
    client.post("/api/cart", json={"product_id": product["id"]}, headers=headers)
    assert client.delete("/api/cart", headers=headers).json()["items"] == []
    assert client.get("/api/cart", headers=headers).json()["items"] == []


def test_deleted_product_line_counts_as_zero(client, user_token, admin_token, make_product):
    keep = make_product(name="Keep", price=100)
    gone = make_product(name="Gone", price=900)
    headers = bearer(user_token)
    client.post("/api/cart", json={"product_id": keep["id"]}, headers=headers)
    client.post("/api/cart", json={"product_id": gone["id"]}, headers=headers)
    client.delete(f"/api/products/{gone['id']}", headers=bearer(admin_token))

    body = client.get("/api/cart", headers=headers).json()
    assert len(body["items"]) == 2
    assert body["items"][1]["product"] is None
    assert body["summary"]["subtotal"] == 100


def test_wishlist_has_no_duplicates(client, user_token, make_product):
    product = make_product()
    headers = bearer(user_token)
    assert client.get("/api/wishlist", headers=headers).json() == {"products": []}
    client.post(f"/api/wishlist/{product['id']}", headers=headers)
    res = client.post(f"/api/wishlist/{product['id']}", headers=headers)
    assert res.status_code == 201
    assert [p["id"] for p in res.json()["products"]] == [product["id"]]


def test_wishlist_remove(client, user_token, make_product):
    product = make_product()
    headers = bearer(user_token)
    assert client.delete(f"/api/wishlist/{product['id']}", headers=headers).status_code == 404
    client.post(f"/api/wishlist/{product['id']}", headers=headers)
    res = client.delete(f"/api/wishlist/{product['id']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["products"] == []
    assert client.post("/api/wishlist/0123456789abcdef01234567", headers=headers).status_code == 404
