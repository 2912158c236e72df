from datetime import timedelta

from security import create_access_token


def test_register_success(client, db):
    res = client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com", "password": "pw123"})
    assert res.status_code == 200
    assert res.json() == {"message": "User registered successfully"}
    user = db["user"].find_one({"email": "a@x.com"})
    assert user["name"] == "Alice"
    assert user["password_hash"] != "pw123"


def test_register_duplicate_email(client):
    body = {"name": "Alice", "email": "a@x.com", "password": "pw123"}
    assert client.post("/api/auth/register", json=body).status_code == 200
    res = client.post("/api/auth/register", json=body)
    assert res.status_code == 400
    assert res.json() == {"error": "User already exists"}


def test_register_duplicate_email_is_case_insensitive(client):
    client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com", "password": "pw123"})
    res = client.post("/api/auth/register", json={"name": "Al", "email": "A@X.com", "password": "other"})
    assert res.status_code == 400


def test_register_missing_fields(client):
    res = client.post("/api/auth/register", json={"email": "a@x.com", "password": "pw123"})
    assert res.status_code == 400
    assert "error" in res.json()

    res = client.post("/api/auth/register", json={"name": "  ", "email": "a@x.com", "password": "pw123"})
    assert res.status_code == 400
    assert res.json() == {"error": "All fields are required"}


def test_login_returns_token_and_user(client, signup):
    signup()
    res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw123"})
    assert res.status_code == 200
    data = res.json()
    assert data["token"]
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["name"] == "Alice"
    assert "password_hash" not in data["user"]


def test_login_wrong_password_and_unknown_email_are_401(client, signup):
    signup()
    wrong = client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "b@x.com", "password": "pw123"})
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json() == {"error": "Invalid password"}
    assert unknown.json() == {"error": "User not found"}


def test_me(client, signup):
    headers = signup()
    res = client.get("/api/me", headers=headers)
    assert res.status_code == 200
    assert res.json()["email"] == "a@x.com"


def test_protected_route_requires_token(client):
    res = client.get("/api/schedules")
    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}


def test_tampered_token_rejected(client, signup):
    headers = signup()
    headers["Authorization"] = headers["Authorization"][:-2] + "xx"
    res = client.get("/api/schedules", headers=headers)
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid token"}


def test_expired_token_rejected(client, signup, db):
    signup()
    user = db["user"].find_one({"email": "a@x.com"})
    token = create_access_token({"sub": str(user["_id"])}, expires_delta=timedelta(seconds=-10))
    res = client.get("/api/schedules", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_token_for_unknown_user_rejected(client):
    token = create_access_token({"sub": "0123456789abcdef01234567"})
    res = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_ping(client):
    res = client.get("/api/ping")
    assert res.status_code == 200
    assert res.json()["ok"] is True
    assert res.json()["time"]


def test_register_rejects_password_with_nul_byte(client, db):
    res = client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com", "password": "a\u0000b"})
    assert res.status_code == 400
    assert res.json()["error"].startswith("Invalid password")
    assert db["user"].count_documents({}) == 0


def test_login_with_nul_byte_password_is_401(client, signup):
    signup()
    res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw\u0000123"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid password"}


def test_email_has_unique_index(client, signup, db):
    signup()
    indexes = db["user"].index_information()
    email_index = [info for info in indexes.values() if info["key"] == [("email", 1)]]
    assert email_index and email_index[0].get("unique") is True


def test_concurrent_duplicate_registration_rejected_by_index(client, db, monkeypatch):
    import stores

    body = {"name": "Alice", "email": "a@x.com", "password": "pw123"}
    assert client.post("/api/auth/register", json=body).status_code == 200
    # Second request passes the existence check, as a racing request would
    monkeypatch.setattr(stores, "get_user_by_email", lambda email: None)
    res = client.post("/api/auth/register", json=body)
    assert res.status_code == 400
    assert res.json() == {"error": "User already exists"}
    assert db["user"].count_documents({"email": "a@x.com"}) == 1
