import os

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

os.environ.setdefault("JWT_SECRET", "test-secret")

import database  # noqa: E402
import main  # noqa: E402


class FakeUPSClient:
    """Stands in for UPSClient; records calls and replays canned answers."""

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.error = None

    def _answer(self, name, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return self.responses.get(name, {})

    def get_token(self):
        return self._answer("get_token")

    def search_locations(self, locator_request, access_token=None):
        return self._answer("search_locations", locator_request, access_token)

    def create_shipment(self, shipment_request):
        return self._answer("create_shipment", shipment_request)

    def rate_pickup(self, rate_request):
        return self._answer("rate_pickup", rate_request)

    def create_pickup(self, creation_request):
        return self._answer("create_pickup", creation_request)

    def pickup_status(self, prn, account_number):
        return self._answer("pickup_status", prn, account_number)

    def track(self, tracking_number):
        return self._answer("track", tracking_number)

    def called(self, name):
        return [args for n, args in self.calls if n == name]


@pytest.fixture
def mdb(monkeypatch):
    mdb = mongomock.MongoClient()["marketplace_test"]
    monkeypatch.setattr(database, "db", mdb)
    monkeypatch.setattr(main, "db", mdb)
    main.ensure_indexes(mdb)
    return mdb


@pytest.fixture
def ups():
    return FakeUPSClient()


@pytest.fixture
def client(mdb, ups):
    main.app.dependency_overrides[main.get_ups_client] = lambda: ups
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def register(client, mdb):
    """Create a user through the API and return (auth headers, user id)."""
    counter = {"n": 0}

    def _register(role="buyer", **extra):
        counter["n"] += 1
        body = {
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "password": "secret123",
            "role": "seller" if role == "seller" else "buyer",
            **extra,
        }
        res = client.post("/api/auth/register", json=body)
        assert res.status_code == 201, res.text
        data = res.json()["data"]
        if role == "admin":
            mdb["user"].update_one({"_id": ObjectId(data["user"]["_id"])}, {"$set": {"role": "admin"}})
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]["_id"]

    return _register


@pytest.fixture
def product(mdb):
    def _product(seller_id, price=25.0, stock=5, title="Brake pad set"):
        doc = {"title": title, "price": price, "stock": stock, "seller_id": seller_id,
               "oem_number": "7701208265", "condition": "used", "images": []}
        return str(mdb["product"].insert_one(doc).inserted_id)

    return _product
