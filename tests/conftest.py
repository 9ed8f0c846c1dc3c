"""Pytest fixtures for the shop backend tests."""

from datetime import datetime, timezone

import jwt
import mongomock
import pytest
from fastapi.testclient import TestClient

TEST_SECRET = "test-secret-0123456789abcdef0123456789"


@pytest.fixture
def mongo_db():
    """An in-memory document store. mongomock has no sessions, so order
    placement runs with the compensating unit of work against it."""
    client = mongomock.MongoClient()
    return client["shop_test"]


@pytest.fixture
def unit_of_work(mongo_db):
    from inventory import CompensatingUnitOfWork

    return CompensatingUnitOfWork(mongo_db, timeout=5)


@pytest.fixture
def add_product(mongo_db):
    """Insert a product document and return its id as a string."""

    def _add(**fields):
        doc = {
            "name": "Widget",
            "price": 100.0,
            "category": ["General"],
            "stock": 5,
            "saleEnabled": False,
            "isActive": True,
            "isCampaign": False,
            "isDeleted": False,
            "createdAt": datetime.now(timezone.utc),
        }
        doc.update(fields)
        return str(mongo_db["product"].insert_one(doc).inserted_id)

    return _add


@pytest.fixture
def stock_of(mongo_db):
    from bson import ObjectId

    def _stock(product_id):
        return mongo_db["product"].find_one({"_id": ObjectId(product_id)})["stock"]

    return _stock


@pytest.fixture
def make_token():
    def _make(user_id, secret=TEST_SECRET, **claims):
        return jwt.encode({"userId": user_id, **claims}, secret, algorithm="HS256")

    return _make


@pytest.fixture
def api_client(mongo_db, monkeypatch):
    """Test client wired to the in-memory store."""
    import database
    import main

    monkeypatch.setattr(database, "db", mongo_db)
    monkeypatch.setattr(main, "MONGO_TRANSACTIONS", False)
    monkeypatch.setattr(main, "JWT_SECRET", TEST_SECRET)
    return TestClient(main.app)


def order_body(*items, payment="cash", **overrides):
    """Build a POST /orders body from (product_id, quantity) pairs."""
    body = {
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
        "customer": {"title": "Home", "detail": "12 Baker Street", "note": "ring twice"},
        "paymentMethod": {"id": payment, "label": payment.title()},
    }
    body.update(overrides)
    return body
