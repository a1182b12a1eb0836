import asyncio

from sqlalchemy import update

from mangabook.database import AsyncSessionLocal
from mangabook.models.user_model import User


def _deactivate(username: str):
    async def run():
        async with AsyncSessionLocal() as session:
            await session.execute(update(User).where(User.username == username).values(is_active=False))
            await session.commit()
    asyncio.run(run())


def test_register_creates_user_and_default_list(client, register_user):
    res = register_user(username="Alice_01", email="Alice@Example.com")

    assert res.status_code == 201
    body = res.json()
    assert body["token"]
    assert body["user"]["username"] == "alice_01"
    assert body["user"]["email"] == "alice@example.com"
    assert body["user"]["displayName"] == "Alice_01"
    assert "password" not in body["user"]
    assert "recoveryKeyword" not in body["user"]

    lists = client.get("/list", headers={"x-auth-token": body["token"]})
    assert lists.status_code == 200
    assert lists.json() == {
        "Currently Reading": [],
        "Plan to Read": [],
        "Completed": [],
        "Dropped": [],
        "On Hold": [],
    }


def test_register_duplicate_email_any_case_conflicts(client, register_user):
    assert register_user().status_code == 201

    res = register_user(username="someone_else", email="ALICE@example.COM")

    assert res.status_code == 409
    assert res.json()["detail"] == "Email already registered"


def test_register_duplicate_username_conflicts(client, register_user):
    assert register_user().status_code == 201

    res = register_user(username="ALICE", email="other@example.com")

    assert res.status_code == 409
    assert res.json()["detail"] == "Username already taken"


def test_register_validation_errors_are_400(client, register_user):
    res = register_user(username="no spaces!", email="not-an-email", password="123")

    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"username", "email", "password"} <= fields


def test_login_is_case_insensitive(client, register_user):
    register_user()

    upper = client.post("/auth/login", json={"emailOrUsername": "Alice", "password": "secret123"})
    lower = client.post("/auth/login", json={"emailOrUsername": "alice", "password": "secret123"})
    by_email = client.post("/auth/login", json={"emailOrUsername": "ALICE@EXAMPLE.COM", "password": "secret123"})

    assert upper.status_code == lower.status_code == by_email.status_code == 200
    assert upper.json()["user"]["id"] == lower.json()["user"]["id"] == by_email.json()["user"]["id"]


def test_login_failures(client, register_user):
    register_user()

    missing = client.post("/auth/login", json={"emailOrUsername": "bob", "password": "secret123"})
    wrong = client.post("/auth/login", json={"emailOrUsername": "alice", "password": "nope-nope"})

    assert missing.status_code == 404
    assert wrong.status_code == 401


def test_login_deactivated_account_is_forbidden(client, register_user):
    register_user()
    _deactivate("alice")

    res = client.post("/auth/login", json={"emailOrUsername": "alice", "password": "secret123"})

    assert res.status_code == 403


def test_me_requires_a_valid_token(client, auth_headers):
    ok = client.get("/auth/me", headers=auth_headers)
    missing = client.get("/auth/me")
    garbage = client.get("/auth/me", headers={"x-auth-token": "not.a.token"})

    assert ok.status_code == 200
    assert ok.json()["user"]["username"] == "alice"
    assert missing.status_code == 401
    assert garbage.status_code == 401


def test_me_accepts_bearer_header(client, auth_headers):
    token = auth_headers["x-auth-token"]

    res = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 200


def test_deactivated_user_token_stops_working(client, auth_headers):
    _deactivate("alice")

    assert client.get("/auth/me", headers=auth_headers).status_code == 401
    assert client.get("/list", headers=auth_headers).status_code == 401


def test_reset_password_flow(client, register_user):
    register_user()
    payload = {
        "emailOrUsername": "alice@example.com",
        "securityWord": "pineapple",
        "newPassword": "brand-new-pw",
        "confirmPassword": "brand-new-pw",
    }

    res = client.post("/auth/reset-password", json=payload)

    assert res.status_code == 200
    old = client.post("/auth/login", json={"emailOrUsername": "alice", "password": "secret123"})
    new = client.post("/auth/login", json={"emailOrUsername": "alice", "password": "brand-new-pw"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_reset_password_rejections(client, register_user):
    register_user()
    base = {
        "emailOrUsername": "alice",
        "securityWord": "pineapple",
        "newPassword": "brand-new-pw",
        "confirmPassword": "brand-new-pw",
    }

    mismatch = client.post("/auth/reset-password", json={**base, "confirmPassword": "something-else"})
    bad_word = client.post("/auth/reset-password", json={**base, "securityWord": "banana"})
    nobody = client.post("/auth/reset-password", json={**base, "emailOrUsername": "bob"})

    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "Passwords do not match"
    assert bad_word.status_code == 401
    assert nobody.status_code == 404


def test_update_preferences_and_public_flag(client, auth_headers):
    res = client.put(
        "/auth/me/preferences",
        json={"theme": "light", "itemsPerPage": 50, "listsPublic": True},
        headers=auth_headers,
    )

    assert res.status_code == 200
    user = res.json()["user"]
    assert user["preferences"] == {"theme": "light", "itemsPerPage": 50}
    assert user["listsPublic"] is True

    public = client.get("/list/public")
    assert public.status_code == 200
    assert [p["username"] for p in public.json()] == ["alice"]


def test_update_preferences_rejects_bad_theme(client, auth_headers):
    res = client.put("/auth/me/preferences", json={"theme": "neon"}, headers=auth_headers)

    assert res.status_code == 400


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.json()["database"] == "connected"


def test_register_race_on_unique_index_is_409(client, register_user, monkeypatch):
    assert register_user().status_code == 201

    # another request registered the same account between the check and the commit
    async def no_conflicts(db, username, email):
        return []
    monkeypatch.setattr("mangabook.routes.auth.find_conflicts", no_conflicts)

    res = register_user()

    assert res.status_code == 409
    assert res.json()["detail"] == "Email or username already registered"
    assert client.post("/auth/login", json={"emailOrUsername": "alice", "password": "secret123"}).status_code == 200


def test_update_preferences_can_clear_display_name(client, auth_headers):
    named = client.put("/auth/me/preferences", json={"displayName": "Al"}, headers=auth_headers)
    cleared = client.put("/auth/me/preferences", json={"displayName": None, "theme": None}, headers=auth_headers)

    assert named.json()["user"]["displayName"] == "Al"
    user = cleared.json()["user"]
    assert user["displayName"] is None
    # NOT NULL preferences ignore an explicit null
    assert user["preferences"]["theme"] == "dark"
