from datetime import datetime, timedelta, timezone

import jwt

from config import settings
from security import create_token, decode_token, hash_password, verify_password


def test_password_hashing():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret-pass", "not-a-bcrypt-hash")


def test_token_round_trip_carries_role():
    claims = decode_token(create_token("owner@mybrand.com", "admin"))
    assert claims["email"] == "owner@mybrand.com"
    assert claims["role"] == "admin"
    assert claims["exp"] > datetime.now(timezone.utc).timestamp() + 6 * 24 * 3600


def test_static_admin_login(client):
    res = client.post("/api/auth/login", json={"email": settings.ADMIN_EMAIL, "password": settings.ADMIN_PASSWORD})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["user"] == {"email": settings.ADMIN_EMAIL, "role": "admin"}

    verified = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {body['token']}"})
    assert verified.json()["valid"] is True


def test_login_rejects_bad_credentials(client):
    res = client.post("/api/auth/login", json={"email": settings.ADMIN_EMAIL, "password": "nope"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid credentials"}


def test_registered_user_can_log_in(client, admin_headers):
    res = client.post(
        "/api/auth/register",
        json={"email": "Manager@MyBrand.com", "password": "manager-pass"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    assert res.json()["user"] == {"email": "manager@mybrand.com", "role": "admin"}

    dup = client.post(
        "/api/auth/register",
        json={"email": "manager@mybrand.com", "password": "manager-pass"},
        headers=admin_headers,
    )
    assert dup.status_code == 409

    login = client.post("/api/auth/login", json={"email": "manager@mybrand.com", "password": "manager-pass"})
    assert login.status_code == 200
    assert login.json()["user"]["role"] == "admin"


def test_register_requires_admin(client):
    res = client.post("/api/auth/register", json={"email": "x@mybrand.com", "password": "whatever"})
    assert res.status_code == 401


def test_verify_token_errors(client):
    assert client.get("/api/auth/verify").status_code == 401
    assert client.get("/api/auth/verify", headers={"Authorization": "Bearer garbage"}).status_code == 403

    expired = jwt.encode(
        {"email": "a@b.co", "role": "admin", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    assert client.get("/api/auth/verify", headers={"Authorization": f"Bearer {expired}"}).status_code == 403


def test_non_admin_token_is_forbidden(client):
    token = create_token("shopper@example.com", "user")
    res = client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 403
    assert res.json() == {"error": "Admin access required"}
