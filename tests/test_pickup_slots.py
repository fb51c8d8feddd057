# tests/test_pickup_slots.py
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from bakery.main import app

client = TestClient(app)


def slot_body(start, hours=1, max_orders=5, **extra):
    body = {
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=hours)).isoformat(),
        "max_orders": max_orders,
    }
    body.update(extra)
    return body


def tomorrow_at(hour):
    day = datetime.now(timezone.utc).date() + timedelta(days=1)
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def test_create_validation(admin_headers):
    start = tomorrow_at(9)
    assert client.post("/pickup-slots", json={"start_time": start.isoformat()}, headers=admin_headers).status_code == 400
    assert client.post("/pickup-slots", json=slot_body(start, hours=-1), headers=admin_headers).status_code == 400
    r = client.post("/pickup-slots", json=slot_body(start, max_orders=-2), headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "max_orders must be a non-negative integer"


def test_customers_see_only_active_future_slots(admin_headers, user_headers):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    client.post("/pickup-slots", json=slot_body(past), headers=admin_headers)
    client.post("/pickup-slots", json=slot_body(tomorrow_at(8), is_active=False), headers=admin_headers)
    open_slot = client.post("/pickup-slots", json=slot_body(tomorrow_at(10)), headers=admin_headers).json()

    seen = client.get("/pickup-slots", headers=user_headers).json()
    assert [s["id"] for s in seen] == [open_slot["id"]]
    assert len(client.get("/pickup-slots", headers=admin_headers).json()) == 3
    assert client.get("/pickup-slots").status_code == 401


def test_admin_filters_by_day_and_active_flag(admin_headers):
    morning = client.post("/pickup-slots", json=slot_body(tomorrow_at(9)), headers=admin_headers).json()
    later = tomorrow_at(9) + timedelta(days=2)
    client.post("/pickup-slots", json=slot_body(later, is_active=False), headers=admin_headers)

    day = tomorrow_at(9).date().isoformat()
    on_day = client.get("/pickup-slots", params={"date": day}, headers=admin_headers).json()
    assert [s["id"] for s in on_day] == [morning["id"]]
    inactive = client.get("/pickup-slots", params={"is_active": "false"}, headers=admin_headers).json()
    assert len(inactive) == 1
    assert inactive[0]["is_active"] is False


def test_update_keeps_range_ordered(admin_headers):
    slot = client.post("/pickup-slots", json=slot_body(tomorrow_at(9)), headers=admin_headers).json()
    r = client.put(f"/pickup-slots/{slot['id']}", json={"end_time": tomorrow_at(8).isoformat()}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put(f"/pickup-slots/{slot['id']}", json={"max_orders": 12, "is_active": False}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["max_orders"] == 12
    assert r.json()["is_active"] is False
    assert client.put("/pickup-slots/999", json={"max_orders": 1}, headers=admin_headers).status_code == 404


def test_slot_with_orders_cannot_be_deleted(admin_headers, user_headers, make_product):
    p = make_product()
    slot = client.post("/pickup-slots", json=slot_body(tomorrow_at(9)), headers=admin_headers).json()
    spare = client.post("/pickup-slots", json=slot_body(tomorrow_at(11)), headers=admin_headers).json()
    client.post("/orders", json={"items": [{"product_id": p["id"], "quantity": 1}], "pickup_slot_id": slot["id"]},
                headers=user_headers)

    assert client.delete(f"/pickup-slots/{slot['id']}", headers=admin_headers).status_code == 409
    assert client.delete(f"/pickup-slots/{spare['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/pickup-slots/{spare['id']}", headers=admin_headers).status_code == 404


def test_slot_writes_need_admin(user_headers):
    assert client.post("/pickup-slots", json=slot_body(tomorrow_at(9)), headers=user_headers).status_code == 403
