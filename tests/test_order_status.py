# tests/test_order_status.py
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

import bakery.orders
from bakery.main import app

client = TestClient(app)


def place(headers, product_id, qty):
    r = client.post("/orders", json={"items": [{"product_id": product_id, "quantity": qty}]}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def stock_of(product_id):
    return client.get(f"/products/{product_id}").json()["stock"]


def test_owner_cancel_pending_reverts_stock(user_headers, make_product):
    p = make_product(stock=10)
    order = place(user_headers, p["id"], 3)
    assert stock_of(p["id"]) == 7

    r = client.put(f"/orders/{order['id']}", json={"status": "CANCELLED"}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert stock_of(p["id"]) == 10


def test_owner_cannot_complete_own_order(user_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    r = client.put(f"/orders/{order['id']}", json={"status": "COMPLETED"}, headers=user_headers)
    assert r.status_code == 403
    assert client.get(f"/orders/{order['id']}", headers=user_headers).json()["status"] == "PENDING"


def test_owner_cannot_cancel_after_confirmation(user_headers, admin_headers, make_product):
    p = make_product(stock=5)
    order = place(user_headers, p["id"], 2)
    client.put(f"/orders/{order['id']}", json={"status": "CONFIRMED"}, headers=admin_headers)

    r = client.put(f"/orders/{order['id']}", json={"status": "CANCELLED"}, headers=user_headers)
    assert r.status_code == 400
    assert stock_of(p["id"]) == 3


def test_other_user_cannot_touch_order(user_headers, other_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    r = client.put(f"/orders/{order['id']}", json={"status": "CANCELLED"}, headers=other_headers)
    assert r.status_code == 403


def test_admin_walks_the_lifecycle(user_headers, admin_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    assert order["next_statuses"] == ["CONFIRMED", "CANCELLED"]
    for status in ("CONFIRMED", "PREPARING", "READY_FOR_PICKUP", "COMPLETED"):
        r = client.put(f"/orders/{order['id']}", json={"status": status}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["status"] == status
    assert r.json()["next_statuses"] == []


def test_admin_rejects_unknown_status(user_headers, admin_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    r = client.put(f"/orders/{order['id']}", json={"status": "SHIPPED"}, headers=admin_headers)
    assert r.status_code == 400


def test_admin_cancel_reverts_only_when_stock_still_held(user_headers, admin_headers, make_product):
    p = make_product(stock=10)
    held = place(user_headers, p["id"], 2)
    done = place(user_headers, p["id"], 3)
    client.put(f"/orders/{done['id']}", json={"status": "COMPLETED"}, headers=admin_headers)
    assert stock_of(p["id"]) == 5

    client.put(f"/orders/{held['id']}", json={"status": "CANCELLED"}, headers=admin_headers)
    r = client.put(f"/orders/{done['id']}", json={"status": "CANCELLED"}, headers=admin_headers)
    assert r.status_code == 400
    assert stock_of(p["id"]) == 7
    # cancelling twice never adds stock twice
    client.put(f"/orders/{held['id']}", json={"status": "CANCELLED"}, headers=admin_headers)
    assert stock_of(p["id"]) == 7


def test_terminal_orders_cannot_be_reopened(user_headers, admin_headers, make_product):
    p = make_product(stock=10)
    cancelled = place(user_headers, p["id"], 3)
    client.put(f"/orders/{cancelled['id']}", json={"status": "CANCELLED"}, headers=user_headers)
    assert stock_of(p["id"]) == 10

    r = client.put(f"/orders/{cancelled['id']}", json={"status": "PENDING"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/orders/{cancelled['id']}", json={"status": "CANCELLED"}, headers=user_headers)
    assert r.status_code == 400
    assert stock_of(p["id"]) == 10

    completed = place(user_headers, p["id"], 4)
    client.put(f"/orders/{completed['id']}", json={"status": "COMPLETED"}, headers=admin_headers)
    r = client.put(f"/orders/{completed['id']}", json={"status": "PENDING"}, headers=admin_headers)
    assert r.status_code == 400
    assert client.get(f"/orders/{completed['id']}", headers=admin_headers).json()["status"] == "COMPLETED"
    # deleting a finished order leaves stock alone
    assert client.delete(f"/orders/{completed['id']}", headers=admin_headers).status_code == 204
    assert stock_of(p["id"]) == 6


def test_cancel_is_all_or_nothing(user_headers, make_product, monkeypatch):
    a = make_product("Sourdough", stock=10)
    b = make_product("Rye", stock=10)
    r = client.post("/orders", json={"items": [
        {"product_id": a["id"], "quantity": 2},
        {"product_id": b["id"], "quantity": 4},
    ]}, headers=user_headers)
    order_id = r.json()["id"]

    real_revert = bakery.orders._revert_stock

    def revert_then_fail(db, order):
        real_revert(db, order)
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(bakery.orders, "_revert_stock", revert_then_fail)
    r = client.put(f"/orders/{order_id}", json={"status": "CANCELLED"}, headers=user_headers)
    assert r.status_code == 500
    assert r.json()["details"] == "disk full"

    monkeypatch.undo()
    assert stock_of(a["id"]) == 8
    assert stock_of(b["id"]) == 6
    assert client.get(f"/orders/{order_id}", headers=user_headers).json()["status"] == "PENDING"


def test_owner_edits_instructions_while_pending(user_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    r = client.put(f"/orders/{order['id']}", json={"special_instructions": "slice it"}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["special_instructions"] == "slice it"


def test_update_without_fields_is_rejected(user_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    r = client.put(f"/orders/{order['id']}", json={}, headers=user_headers)
    assert r.status_code == 400
    # same status from a non-admin changes nothing
    r = client.put(f"/orders/{order['id']}", json={"status": "PENDING"}, headers=user_headers)
    assert r.status_code == 400


def test_update_missing_order(user_headers):
    r = client.put("/orders/404", json={"status": "CANCELLED"}, headers=user_headers)
    assert r.status_code == 404


def test_admin_delete_reverts_stock(user_headers, admin_headers, make_product):
    p = make_product(stock=4)
    order = place(user_headers, p["id"], 4)
    assert stock_of(p["id"]) == 0
    r = client.delete(f"/orders/{order['id']}", headers=admin_headers)
    assert r.status_code == 204
    assert stock_of(p["id"]) == 4
    assert client.get(f"/orders/{order['id']}", headers=admin_headers).status_code == 404


def test_non_admin_cannot_delete_orders(user_headers, make_product):
    p = make_product()
    order = place(user_headers, p["id"], 1)
    assert client.delete(f"/orders/{order['id']}", headers=user_headers).status_code == 403
