"""Pytest fixtures for the textile shop API tests."""

import os
import tempfile

os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="textile-uploads-"))

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from database import get_db, now


@pytest.fixture
def db():
    """An in-memory MongoDB database."""
    return mongomock.MongoClient()["textile_test"]


@pytest.fixture
def client(db):
    """Test client with the database dependency pointed at mongomock."""
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user with the given role and return (user_id, auth headers)."""
    from security import create_access_token

    def _make(role="buyer", name=None, email=None):
        name = name or f"{role.title()} {ObjectId()}"
        email = email or f"{ObjectId()}@textileshop.com"
        user_id = db["user"].insert_one({
            "name": name,
            "email": email,
            "password_hash": "not-a-real-hash",
            "role": role,
            "created_at": now(),
            "updated_at": now(),
        }).inserted_id
        token = create_access_token({"sub": str(user_id)})
        return str(user_id), {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def buyer(make_user):
    return make_user("buyer", name="Bella Buyer")


@pytest.fixture
def other_buyer(make_user):
    return make_user("buyer", name="Oscar Other")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin")


@pytest.fixture
def courier(make_user):
    return make_user("delivery", name="Dan Driver")


@pytest.fixture
def make_product(db):
    def _make(stock=10, price=25.0, name="Linen Shirt", image=None):
        return str(db["product"].insert_one({
            "name": name,
            "description": "Breathable linen",
            "price": price,
            "stock": stock,
            "category": "Linen",
            "image": image,
            "created_at": now(),
            "updated_at": now(),
        }).inserted_id)

    return _make


SHIPPING = {
    "full_name": "Bella Buyer",
    "email": "bella@textileshop.com",
    "address": "12 Loom Street",
    "city": "Colombo",
    "postal_code": "00100",
    "country": "Sri Lanka",
}


@pytest.fixture
def place_order(client):
    """Place an order as the given buyer and return the response JSON data."""

    def _place(headers, product_id, quantity=1, payment_method="CashOnDelivery", total_price=25.0):
        response = client.post(
            "/api/orders",
            json={
                "product_id": product_id,
                "quantity": quantity,
                "total_price": total_price,
                "payment_method": payment_method,
                "shipping_address": SHIPPING,
            },
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _place
