from datetime import datetime, timedelta, timezone

import jwt
from bson import ObjectId

import config
from tests.conftest import PASSWORD


def test_register_returns_token_and_user(client, db):
    resp = client.post("/api/auth/register",
                       json={"name": "Nimal", "email": "Nimal@Example.com", "password": "gemstone"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["token"]
    assert data["user"]["email"] == "nimal@example.com"
    assert data["user"]["role"] == "user"
    stored = db["user"].find_one({"email": "nimal@example.com"})
    assert stored["password"] != "gemstone"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Nimal"
    assert "password" not in me.json()


def test_register_rejects_duplicate_email_and_short_password(client, user_auth):
    resp = client.post("/api/auth/register", json={"name": "Ada", "email": "ada@example.com", "password": "another1"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already exists"

    resp = client.post("/api/auth/register", json={"name": "Kim", "email": "kim@example.com", "password": "123"})
    assert resp.status_code == 400


def test_login(client, user_auth):
    resp = client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Ada"

    resp = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"

    resp = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert resp.status_code == 401


def test_token_failures(client, user_auth):
    user, _ = user_auth
    assert client.get("/api/auth/me").json()["message"] == "No token provided"

    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"

    past = datetime.now(timezone.utc) - timedelta(days=1)
    expired = jwt.encode({"sub": str(user["_id"]), "exp": past}, config.JWT_SECRET, algorithm="HS256")
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired"

    ghost = jwt.encode({"sub": str(ObjectId()), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
                       config.JWT_SECRET, algorithm="HS256")
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {ghost}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "User not found"


def test_stored_role_outside_known_roles_is_unauthenticated(client, make_user, make_gem):
    _, headers = make_user("Eve", role="superuser")
    make_gem()

    resp = client.get("/api/auth/me", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid user role"

    resp = client.get("/api/gems", headers=headers)
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_token_lifetime_is_seven_days(user_auth):
    _, headers = user_auth
    token = headers["Authorization"].split(" ")[1]
    payload = jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60


def test_update_profile_and_avatar(client, storage, user_auth):
    _, headers = user_auth
    resp = client.put("/api/auth/me", json={"name": "Ada L."}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Ada L."

    resp = client.put("/api/auth/me/avatar", files={"image": ("me.png", b"png", "image/png")}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["profileImage"] == "https://res.cloudinary.test/gemora-profiles/me.png"


def test_change_password(client, user_auth):
    _, headers = user_auth
    resp = client.put("/api/auth/password", json={"currentPassword": "wrong-one", "newPassword": "brandnew"},
                      headers=headers)
    assert resp.status_code == 400

    resp = client.put("/api/auth/password", json={"currentPassword": PASSWORD, "newPassword": "brandnew"},
                      headers=headers)
    assert resp.status_code == 200
    assert client.post("/api/auth/login", json={"email": "ada@example.com", "password": "brandnew"}).status_code == 200


def test_role_change_is_admin_only(client, user_auth, admin_auth):
    user, user_headers = user_auth
    _, admin_headers = admin_auth
    url = f"/api/users/{user['_id']}/role"

    resp = client.put(url, json={"role": "admin"}, headers=user_headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied. Required roles: admin"

    assert client.put(url, json={"role": "superuser"}, headers=admin_headers).status_code == 400
    assert client.put(f"/api/users/{ObjectId()}/role", json={"role": "admin"},
                      headers=admin_headers).status_code == 404

    resp = client.put(url, json={"role": "admin"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["role"] == "admin"
    # role is re-read from the database, so the old token now carries admin rights
    assert client.get("/api/users", headers=user_headers).status_code == 200


def test_list_users_hides_passwords(client, user_auth, admin_auth):
    _, headers = admin_auth
    users = client.get("/api/users", headers=headers).json()
    assert len(users) == 2
    assert all("password" not in u for u in users)
