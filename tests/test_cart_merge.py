# tests/test_cart_merge.py
from fastapi.testclient import TestClient

from bakery.cart import normalize_guest_items
from bakery.main import app

client = TestClient(app)


def quantities(body):
    return {it["id"]: it["quantity"] for it in body["items"]}


def test_merge_into_empty_cart(user_headers, make_product):
    a = make_product("Sourdough")
    b = make_product("Baguette")
    r = client.post("/cart/sync", json={"items": [
        {"product_id": a["id"], "quantity": 2},
        {"product_id": b["id"], "quantity": 1},
    ]}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Cart merged successfully"
    assert quantities(r.json()) == {a["id"]: 2, b["id"]: 1}
    # persisted, not just echoed
    assert quantities(client.get("/cart", headers=user_headers).json()) == {a["id"]: 2, b["id"]: 1}


def test_merge_adds_to_existing_quantity(user_headers, make_product):
    a = make_product("Sourdough")
    client.post("/cart/add", json={"product_id": a["id"], "quantity": 3}, headers=user_headers)
    r = client.post("/cart/sync", json={"items": [{"product_id": a["id"], "quantity": 2}]}, headers=user_headers)
    assert quantities(r.json()) == {a["id"]: 5}


def test_merge_drops_archived_and_clamps_quantities(user_headers, admin_headers, make_product):
    a = make_product("Sourdough")
    b = make_product("Rye")
    gone = make_product("Stollen")
    client.put(f"/products/{gone['id']}", json={"status": "ARCHIVED"}, headers=admin_headers)

    r = client.post("/cart/sync", json={"items": [
        {"product_id": a["id"], "quantity": 0},
        {"product_id": b["id"], "quantity": -4},
        {"product_id": gone["id"], "quantity": 2},
    ]}, headers=user_headers)
    assert quantities(r.json()) == {a["id"]: 1, b["id"]: 1}


def test_merge_floors_fractional_quantities_and_accepts_id_key(user_headers, make_product):
    a = make_product("Sourdough")
    r = client.post("/cart/sync", json={"items": [{"id": a["id"], "quantity": 2.7}]}, headers=user_headers)
    assert quantities(r.json()) == {a["id"]: 2}


def test_merge_skips_deleted_inactive_and_unknown_products(user_headers, admin_headers, make_product):
    a = make_product("Sourdough")
    deleted = make_product("Old loaf")
    inactive = make_product("Seasonal", status="INACTIVE")
    client.delete(f"/products/{deleted['id']}", headers=admin_headers)

    r = client.post("/cart/sync", json={"items": [
        {"product_id": a["id"], "quantity": 1},
        {"product_id": deleted["id"], "quantity": 1},
        {"product_id": inactive["id"], "quantity": 1},
        {"product_id": 9999, "quantity": 1},
    ]}, headers=user_headers)
    assert r.status_code == 200
    assert quantities(r.json()) == {a["id"]: 1}


def test_merge_twice_double_counts(user_headers, make_product):
    a = make_product("Sourdough")
    payload = {"items": [{"product_id": a["id"], "quantity": 2}]}
    client.post("/cart/sync", json=payload, headers=user_headers)
    r = client.post("/cart/sync", json=payload, headers=user_headers)
    assert quantities(r.json()) == {a["id"]: 4}


def test_merge_duplicate_entries_in_one_request_add_up(user_headers, make_product):
    a = make_product("Sourdough")
    r = client.post("/cart/sync", json={"items": [
        {"product_id": a["id"], "quantity": 1},
        {"product_id": a["id"], "quantity": 2},
    ]}, headers=user_headers)
    assert quantities(r.json()) == {a["id"]: 3}


def test_merge_rejects_non_array(user_headers):
    r = client.post("/cart/sync", json={"items": {"1": 2}}, headers=user_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Items must be an array"


def test_merge_nothing_to_sync(user_headers):
    r = client.post("/cart/sync", json={"items": ["junk", {"product_id": "3", "quantity": 1}]}, headers=user_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Nothing to sync", "items": []}


def test_merge_requires_login():
    r = client.post("/cart/sync", json={"items": []})
    assert r.status_code == 401


def test_normalize_guest_items():
    raw = [
        {"product_id": 1, "quantity": 3},
        {"id": 2, "quantity": 0.5},
        {"product_id": 3, "quantity": True},
        {"product_id": 4.5, "quantity": 1},
        {"product_id": 5, "quantity": float("inf")},
        {"quantity": 1},
        None,
    ]
    assert normalize_guest_items(raw) == [(1, 3), (2, 1)]


def test_normalize_guest_items_drops_out_of_range_values():
    raw = [
        {"product_id": 1, "quantity": 1e30},
        {"product_id": 2, "quantity": 10 ** 400},
        {"product_id": 10 ** 30, "quantity": 1},
        {"product_id": 0, "quantity": 1},
        {"product_id": 3, "quantity": 999},
    ]
    assert normalize_guest_items(raw) == [(3, 999)]


def test_huge_guest_quantity_is_skipped_not_stored(user_headers, make_product):
    a = make_product("Sourdough")
    b = make_product("Rye")
    r = client.post("/cart/sync", json={"items": [
        {"product_id": a["id"], "quantity": 1e30},
        {"product_id": b["id"], "quantity": 2},
    ]}, headers=user_headers)
    assert r.status_code == 200
    assert quantities(r.json()) == {b["id"]: 2}

    r = client.post("/cart/sync", json={"items": [{"product_id": a["id"], "quantity": 1e30}]}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Nothing to sync"


def test_cart_and_order_quantities_are_capped(user_headers, make_product):
    p = make_product(stock=10)
    r = client.post("/cart/add", json={"product_id": p["id"], "quantity": 10 ** 30}, headers=user_headers)
    assert r.status_code == 400
    assert client.post("/cart/add", json={"product_id": p["id"], "quantity": 1}, headers=user_headers).status_code == 200
    r = client.put("/cart/update", json={"product_id": p["id"], "quantity": 1000}, headers=user_headers)
    assert r.status_code == 400
    r = client.post("/orders", json={"items": [{"product_id": p["id"], "quantity": 1000}]}, headers=user_headers)
    assert r.status_code == 400
    assert client.get(f"/products/{p['id']}").json()["stock"] == 10
