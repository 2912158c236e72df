import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["sehatpulse_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def client(db):
    return TestClient(main.app)


@pytest.fixture
def signup(client):
    """Register and log in a user; returns the Authorization headers."""
    def _signup(name="Alice", email="a@x.com", password="pw123"):
        res = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert res.status_code == 200, res.text
        res = client.post("/api/auth/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        return {"Authorization": f"Bearer {res.json()['token']}"}
    return _signup
