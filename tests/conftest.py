# tests/conftest.py
import uuid

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from user_service import db
from user_service.main import app

TEST_PASSWORD = "password123"
INITIAL_BALANCE = 100.0


class FlakyCollection:
    """
    Wraps a collection and makes selected writes fail with a PyMongoError.

    ``fail_update`` receives (filter, update) and decides whether update_one fails.
    ``fail_count`` makes count_documents fail.
    """

    def __init__(self, collection, fail_update=None, fail_count=False):
        self._collection = collection
        self._fail_update = fail_update
        self._fail_count = fail_count
        self.failed_updates = []

    def __getattr__(self, name):
        return getattr(self._collection, name)

    def update_one(self, filter, update, *args, **kwargs):
        if self._fail_update is not None and self._fail_update(filter, update):
            self.failed_updates.append(update)
            raise PyMongoError("simulated write failure")
        return self._collection.update_one(filter, update, *args, **kwargs)

    def count_documents(self, filter, *args, **kwargs):
        if self._fail_count:
            raise PyMongoError("simulated lookup failure")
        return self._collection.count_documents(filter, *args, **kwargs)


@pytest.fixture
def users():
    """In-memory 'Users' collection, fresh for every test."""
    return mongomock.MongoClient()["CoinDB"]["Users"]


@pytest.fixture
def client(users):
    """
    TestClient wired to the in-memory collection.
    The lifespan (real MongoClient) is not started because the client is not used as a context manager.
    """
    app.dependency_overrides[db.get_users] = lambda: users
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def email():
    # Un email único por prueba
    return f"testuser_{uuid.uuid4()}@example.com"


@pytest.fixture
def user_payload(email):
    return {
        "username": "tester",
        "email": email,
        "password": TEST_PASSWORD,
        "phone": "555-0100",
        "firstName": "Test",
        "middleName": "",
        "lastName": "User",
        "accountStatus": "active",
        "balance": INITIAL_BALANCE,
    }


@pytest.fixture
def registered_user(client, user_payload):
    """Registers a user through the API and returns its email and password."""
    r = client.post("/user/register", json=user_payload)
    assert r.status_code == 201, f"Registro fallido: {r.status_code} {r.text}"
    return {"email": user_payload["email"], "password": TEST_PASSWORD}


def get_current_balance(client, email: str) -> float:
    r = client.get(f"/user/{email}")
    assert r.status_code == 200, r.text
    return r.json()["balance"]
