import re

import mongomock

from catalog import review_stats, sanitize_path, to_slug, unique_slug
from fix_slugs import backfill_slugs
from tests.conftest import bearer, register


def test_to_slug():
    assert to_slug("  Belted Faux Leather Long Coat ") == "belted-faux-leather-long-coat"
    assert to_slug("Y2K Top (Pink!)") == "y2k-top-pink"


def test_unique_slug_linear_probe():
    coll = mongomock.MongoClient()["t"]["product"]
    coll.insert_many([{"slug": "black-top"}, {"slug": "black-top-1"}])
    assert unique_slug(coll, "Black Top") == "black-top-2"
    assert unique_slug(coll, "White Top") == "white-top"


def test_sanitize_path():
    assert sanitize_path("images\\a.jpg") == "/images/a.jpg"
    assert sanitize_path("/images/a.jpg") == "/images/a.jpg"
    assert sanitize_path("https://cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"


def test_review_stats():
    assert review_stats([]) == {"rating": 0, "num_reviews": 0}
    assert review_stats([{"rating": 5}, {"rating": 2}]) == {"rating": 3.5, "num_reviews": 2}


def test_create_product_generates_unique_slugs(client, make_product):
    first = make_product(name="Black Polka Net Top", category="Y2K Era Tops")
    second = make_product(name="Black Polka Net Top", category="y2k era tops")
    third = make_product(name="Black Polka Net Top", category="y2k era tops")
    assert [first["slug"], second["slug"], third["slug"]] == [
        "black-polka-net-top", "black-polka-net-top-1", "black-polka-net-top-2",
    ]
    for p in (first, second, third):
        assert re.fullmatch(r"[a-z0-9\-]+", p["slug"])
    assert first["category"] == "y2k era tops"
    assert first["category_slug"] == "y2k-era-tops"
    assert first["thumbnail"] == "/images/products/a.jpg"
    assert first["rating"] == 0 and first["num_reviews"] == 0


def test_create_product_validation(client, admin_token):
    headers = bearer(admin_token)
    base = {"name": "Jacket", "price": 10, "category": "leather jacket", "images": ["a.jpg"]}

    res = client.post("/api/products", json={**base, "category": "shoes"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["success"] is False

    assert client.post("/api/products", json={**base, "price": -1}, headers=headers).status_code == 400
    assert client.post("/api/products", json={**base, "images": []}, headers=headers).status_code == 400
    assert client.post("/api/products", json={k: v for k, v in base.items() if k != "name"}, headers=headers).status_code == 400


def test_product_writes_require_admin(client, user_token, make_product):
    product = make_product()
    body = {"name": "X", "price": 1, "category": "handbags", "images": ["x.jpg"]}
    assert client.post("/api/products", json=body).status_code == 401
    res = client.post("/api/products", json=body, headers=bearer(user_token))
    assert res.status_code == 403
    assert res.json()["message"] == "Access denied, admin only"
    assert client.put(f"/api/products/{product['id']}", json={"price": 5}, headers=bearer(user_token)).status_code == 403
    assert client.delete(f"/api/products/{product['id']}", headers=bearer(user_token)).status_code == 403


def test_list_products_filters_and_paginates(client, make_product):
    jackets = [make_product(name=f"Jacket {i}") for i in range(3)]
    make_product(name="Handbag", category="handbags")

    res = client.get("/api/products", params={"category": "LEATHER JACKET", "limit": 2})
    body = res.json()
    assert body["total"] == 3
    assert body["pages"] == 2
    assert body["page"] == 1
    assert len(body["products"]) == 2

    res = client.get("/api/products", params={"category": "leather jacket", "page": 2, "limit": 2})
    assert len(res.json()["products"]) == 1

    res = client.get("/api/products", params={"exclude": jackets[0]["id"]})
    ids = [p["id"] for p in res.json()["products"]]
    assert jackets[0]["id"] not in ids
    assert res.json()["total"] == 3


def test_get_product_by_id_and_slug(client, make_product):
    product = make_product(name="Corset Top", category="corset top")
    assert client.get(f"/api/products/{product['id']}").json()["slug"] == "corset-top"
    assert client.get("/api/products/slug/corset-top").json()["id"] == product["id"]
    assert client.get("/api/products/slug/missing").status_code == 404
    assert client.get("/api/products/not-an-id").status_code == 404
    assert client.get("/api/products/0123456789abcdef01234567").status_code == 404


def test_update_keeps_slug(client, admin_token, make_product):
    product = make_product(name="Denim Jeans", category="denim jeans")
    res = client.put(
        f"/api/products/{product['id']}",
        json={"name": "Blue Denim Jeans", "price": 1999, "images": ["new\\1.jpg"]},
        headers=bearer(admin_token),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["name"] == "Blue Denim Jeans"
    assert body["slug"] == "denim-jeans"
    assert body["images"] == ["/new/1.jpg"]

    res = client.put(f"/api/products/{product['id']}", json={}, headers=bearer(admin_token))
    assert res.status_code == 400


def test_update_rejects_null_required_fields(client, admin_token, user_token, make_product):
    product = make_product(name="Corset Top", price=900)
    for field in ("name", "price", "category", "condition", "images", "thumbnail", "stock"):
        res = client.put(f"/api/products/{product['id']}", json={field: None}, headers=bearer(admin_token))
        assert res.status_code == 400, field
        assert res.json()["success"] is False

    stored = client.get(f"/api/products/{product['id']}").json()
    assert stored["name"] == "Corset Top"
    assert stored["price"] == 900

    res = client.put(
        f"/api/products/{product['id']}",
        json={"badge": None, "description": None, "sizes": None},
        headers=bearer(admin_token),
    )
    assert res.status_code == 200
    assert res.json()["badge"] is None
    assert res.json()["sizes"] == []

    res = client.post(
        "/api/payments/cod/order",
        json={"items": [{"product_id": product["id"], "quantity": 1}]},
        headers=bearer(user_token),
    )
    assert res.status_code == 201
    assert res.json()["order"]["subtotal"] == 900


def test_delete_product(client, admin_token, make_product):
    product = make_product()
    assert client.delete(f"/api/products/{product['id']}", headers=bearer(admin_token)).status_code == 200
    assert client.get(f"/api/products/{product['id']}").status_code == 404
    assert client.delete(f"/api/products/{product['id']}", headers=bearer(admin_token)).status_code == 404


def test_reviews_update_rating_and_reject_duplicates(client, make_product):
    product = make_product()
    alice = register(client, "alice")
    bob = register(client, "bob")

    res = client.post(f"/api/products/{product['id']}/reviews", json={"rating": 5, "comment": "Love it"}, headers=bearer(alice))
    assert res.status_code == 201
    client.post(f"/api/products/{product['id']}/reviews", json={"rating": 2, "comment": "Meh"}, headers=bearer(bob))

    detail = client.get(f"/api/products/{product['id']}").json()
    assert detail["num_reviews"] == 2
    assert detail["rating"] == 3.5
    assert len(detail["reviews"]) == 2

    res = client.post(f"/api/products/{product['id']}/reviews", json={"rating": 1, "comment": "Again"}, headers=bearer(alice))
    assert res.status_code == 400
    assert res.json()["message"] == "You have already reviewed this product"
    assert client.get(f"/api/products/{product['id']}").json()["num_reviews"] == 2
    assert len(client.get(f"/api/products/{product['id']}/reviews").json()) == 2


def test_review_validation(client, user_token, make_product):
    product = make_product()
    url = f"/api/products/{product['id']}/reviews"
    assert client.post(url, json={"rating": 6, "comment": "x"}, headers=bearer(user_token)).status_code == 400
    assert client.post(url, json={"rating": 4, "comment": ""}, headers=bearer(user_token)).status_code == 400
    assert client.post(url, json={"rating": 4, "comment": "ok"}).status_code == 401


def test_backfill_slugs():
    db = mongomock.MongoClient()["t"]
    db["product"].insert_many([
        {"name": "Mini Handbag", "slug": "mini-handbag"},
        {"name": "Mini Handbag"},
        {"name": "Corset Top", "slug": ""},
    ])
    assert backfill_slugs(db) == 2
    slugs = sorted(p["slug"] for p in db["product"].find())
    assert slugs == ["corset-top", "mini-handbag", "mini-handbag-1"]
