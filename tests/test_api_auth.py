REGISTER_PAYLOAD = {
    "email": "new.customer@example.com",
    "password": "Sup3rSecret!",
    "first_name": "New",
    "last_name": "Customer",
}


async def test_register_returns_user_and_tokens(client):
    response = await client.post("/api/v1/auth/register", json=REGISTER_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == REGISTER_PAYLOAD["email"]
    assert body["user"]["role"] == "CUSTOMER"
    assert body["tokens"]["token_type"] == "bearer"
    assert body["tokens"]["access_token"]
    assert body["tokens"]["refresh_token"]

    headers = {"Authorization": f"Bearer {body['tokens']['access_token']}"}
    cart = await client.get("/api/v1/cart", headers=headers)
    assert cart.status_code == 200
    assert cart.json()["summary"]["total_items"] == 0


async def test_register_duplicate_email(client):
    await client.post("/api/v1/auth/register", json=REGISTER_PAYLOAD)
    response = await client.post("/api/v1/auth/register", json=REGISTER_PAYLOAD)

    assert response.status_code == 409
    assert response.json()["type"] == "DuplicateResourceError"


async def test_register_validates_payload(client):
    response = await client.post(
        "/api/v1/auth/register",
        json={**REGISTER_PAYLOAD, "email": "not-an-email", "password": "short"},
    )
    assert response.status_code == 422


async def test_login_and_me(client, customer):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": customer.email, "password": "Secret123!"},
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == str(customer.id)


async def test_login_wrong_password(client, customer):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": customer.email, "password": "wrong-password"},
    )
    assert response.status_code == 401


async def test_refresh(client, customer):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": customer.email, "password": "Secret123!"},
    )
    tokens = login.json()

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert response.json()["access_token"]

    # an access token is not accepted as a refresh token
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


async def test_protected_routes_need_a_token(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code in (401, 403)

    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code in (200, 503)
    assert "checks" in response.json()
