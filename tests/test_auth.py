from tests.conftest import PASSWORD, login


async def test_register_normalizes_email(async_client):
    response = await async_client.post(
        "/api/v1/auth/register",
        json={"email": "Alice@Example.com", "password": PASSWORD, "name": "Alice"},
    )
    assert response.status_code == 201
    assert response.json()["email"] == "alice@example.com"

    response = await async_client.post(
        "/api/v1/auth/register",
        json={"email": "alice@example.com", "password": PASSWORD},
    )
    assert response.status_code == 409
    assert response.json()["reason"] == "conflict"


async def test_register_validates_input(async_client):
    response = await async_client.post("/api/v1/auth/register", json={"email": "nope", "password": PASSWORD})
    assert response.status_code == 422
    response = await async_client.post("/api/v1/auth/register", json={"email": "a@example.com", "password": "123"})
    assert response.status_code == 422


async def test_login_with_wrong_password(async_client, signup):
    await signup("alice@example.com", "Alice")
    response = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "alice@example.com", "password": "wrong-password"},
    )
    assert response.status_code == 401


async def test_me_and_logout_revokes_token(async_client, fake_redis, signup):
    alice = await signup("alice@example.com", "Alice")

    response = await async_client.get("/api/v1/users/me", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["name"] == "Alice"

    response = await async_client.post("/api/v1/auth/logout", headers=alice["headers"])
    assert response.status_code == 200
    assert f"access_token:{alice['id']}" not in fake_redis.values

    response = await async_client.get("/api/v1/users/me", headers=alice["headers"])
    assert response.status_code == 401


async def test_refresh_issues_new_access_token(async_client, signup):
    await signup("alice@example.com", "Alice")
    response = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "alice@example.com", "password": PASSWORD},
    )
    tokens = response.json()

    response = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    refreshed = response.json()
    assert refreshed["refresh_token"] == tokens["refresh_token"]

    response = await async_client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {refreshed['access_token']}"}
    )
    assert response.status_code == 200

    # An access token cannot stand in for a refresh token
    response = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": refreshed["access_token"]})
    assert response.status_code == 401


async def test_preferences(async_client, signup):
    alice = await signup("alice@example.com", "Alice")

    response = await async_client.get("/api/v1/users/me/preferences", headers=alice["headers"])
    assert response.json() == {
        "dark_mode": False,
        "auto_save": True,
        "email_notifications": True,
        "reminder_notifications": False,
    }

    response = await async_client.put(
        "/api/v1/users/me/preferences", json={"dark_mode": True}, headers=alice["headers"]
    )
    assert response.json()["dark_mode"] is True
    assert response.json()["auto_save"] is True

    headers = await login(async_client, "alice@example.com")
    response = await async_client.get("/api/v1/users/me/preferences", headers=headers)
    assert response.json()["dark_mode"] is True
