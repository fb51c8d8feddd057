# tests/conftest.py
import os

os.environ.setdefault("BAKERY_DATABASE_URL", "sqlite://")
os.environ.setdefault("BAKERY_JWT_SECRET", "test-secret")
os.environ.setdefault("BAKERY_BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from bakery.database import SessionLocal, reset_db
from bakery.main import app
from bakery.models import User
from bakery.security import hash_password

_client = TestClient(app)


def _login(email, password):
    r = _client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture(autouse=True)
def fresh_db():
    reset_db()
    yield


@pytest.fixture
def admin_headers():
    # registration never grants admin, so seed one straight into the table
    with SessionLocal() as db:
        db.add(User(name="Baker", email="admin@bakery.test", password=hash_password("admin-pass"), is_admin=True))
        db.commit()
    return _login("admin@bakery.test", "admin-pass")


def _register(email, name):
    r = _client.post("/auth/register", json={"name": name, "email": email, "password": "secret123"})
    assert r.status_code == 201, r.text
    return _login(email, "secret123")


@pytest.fixture
def user_headers():
    return _register("alice@example.com", "Alice")


@pytest.fixture
def other_headers():
    return _register("bob@example.com", "Bob")


@pytest.fixture
def make_product(admin_headers):
    def _make(name="Croissant", price_cents=350, stock=10, category="pastry", status=None):
        body = {"name": name, "price_cents": price_cents, "stock": stock, "category": category}
        if status:
            body["status"] = status
        r = _client.post("/products", json=body, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
