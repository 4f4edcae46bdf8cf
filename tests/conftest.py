import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import database
import mailer
from config import settings
from main import app
from security import create_token


class FakeTransport:
    """Records outgoing mail; recipients listed in fail_for raise instead."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, email):
        if email.to in self.fail_for:
            raise RuntimeError("SMTP relay unavailable")
        self.sent.append(email)
        return f"<{len(self.sent)}@test.local>"


@pytest.fixture
def db(monkeypatch):
    mock_db = AsyncMongoMockClient()[f"test_{uuid.uuid4().hex[:8]}"]
    monkeypatch.setattr(database, "_db", mock_db)
    return mock_db


@pytest.fixture
def transport():
    fake = FakeTransport()
    mailer.set_transport(fake)
    yield fake
    mailer.set_transport(None)


@pytest.fixture
def client(db, transport):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_token(settings.ADMIN_EMAIL, 'admin')}"}


@pytest.fixture
def count(db):
    def _count(collection, filt=None):
        return asyncio.run(db[collection].count_documents(filt or {}))
    return _count


@pytest.fixture
def make_product(client, admin_headers):
    def _make(**overrides):
        body = {
            "name": "Royal Oud",
            "description": "Rare oud wood, amber and musk.",
            "price": 2500,
            "category": "Woody",
            "fragranceNotes": ["Oud", "Amber"],
        }
        body.update(overrides)
        res = client.post("/api/products", json=body, headers=admin_headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _make
