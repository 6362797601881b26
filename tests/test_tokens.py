"""Tests for API token endpoints"""
import pytest

from app.core.config import settings


@pytest.mark.asyncio
async def test_create_token_returns_secret_once(client, auth_headers):
    """The raw secret is in the create response and never in listings"""
    response = await client.post("/api/v1/tokens", json={"name": "deploy"}, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    raw = data["token"]["token"]
    assert raw.startswith(settings.API_TOKEN_PREFIX)
    assert data["token"]["name"] == "deploy"
    assert data["remainingRequests"] == settings.RATE_LIMIT_TOKENS_CREATE - 1

    listing = await client.get("/api/v1/tokens", headers=auth_headers)
    assert listing.status_code == 200
    tokens = listing.json()["tokens"]
    assert {t["name"] for t in tokens} == {"ci", "deploy"}
    assert raw not in listing.text
    for token in tokens:
        assert "token" not in token
        assert token["token_preview"].endswith("...")


@pytest.mark.asyncio
async def test_created_token_authenticates(client, auth_headers):
    created = await client.post("/api/v1/tokens", json={"name": "second"}, headers=auth_headers)
    raw = created.json()["token"]["token"]

    response = await client.get("/api/v1/tokens", headers={"Authorization": f"Bearer {raw}"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_issued_secrets_are_unique(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_TOKENS_CREATE", 50)
    secrets = set()
    for i in range(20):
        response = await client.post("/api/v1/tokens", json={"name": f"t{i}"}, headers=auth_headers)
        assert response.status_code == 201
        secrets.add(response.json()["token"]["token"])

    assert len(secrets) == 20


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "   "}])
async def test_create_token_requires_name(client, auth_headers, body):
    response = await client.post("/api/v1/tokens", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "InvalidRequest", "detail": "Token name is required"}


@pytest.mark.asyncio
async def test_create_token_rate_limited(client, auth_headers, monkeypatch):
    """Eleven creates against a limit of five: five succeed, six are rejected"""
    monkeypatch.setattr(settings, "RATE_LIMIT_TOKENS_CREATE", 5)

    statuses = []
    remaining = []
    for i in range(11):
        response = await client.post("/api/v1/tokens", json={"name": f"burst-{i}"}, headers=auth_headers)
        statuses.append(response.status_code)
        if response.status_code == 201:
            remaining.append(response.json()["remainingRequests"])
        else:
            body = response.json()
            assert body["error"] == "RateLimitExceeded"
            assert body["remaining"] == 0
            assert body["resetAt"] > 0
            assert int(response.headers["Retry-After"]) >= 0
            assert response.headers["X-RateLimit-Remaining"] == "0"

    assert statuses == [201] * 5 + [429] * 6
    assert remaining == [4, 3, 2, 1, 0]


@pytest.mark.asyncio
async def test_rate_limit_headers_present(client, auth_headers):
    response = await client.get("/api/v1/tokens", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == str(settings.RATE_LIMIT_TOKENS_LIST)
    assert response.headers["X-RateLimit-Remaining"] == str(settings.RATE_LIMIT_TOKENS_LIST - 1)
    assert "X-RateLimit-Reset" in response.headers
    assert response.json()["remainingRequests"] == settings.RATE_LIMIT_TOKENS_LIST - 1


@pytest.mark.asyncio
async def test_limits_are_per_user(client, auth_headers, make_user, make_token, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_TOKENS_LIST", 1)
    other = await make_user("other@example.com")
    other_headers = {"Authorization": f"Bearer {await make_token(other)}"}

    assert (await client.get("/api/v1/tokens", headers=auth_headers)).status_code == 200
    assert (await client.get("/api/v1/tokens", headers=auth_headers)).status_code == 429
    assert (await client.get("/api/v1/tokens", headers=other_headers)).status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_disabled(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(settings, "RATE_LIMIT_TOKENS_LIST", 1)

    for _ in range(3):
        response = await client.get("/api/v1/tokens", headers=auth_headers)
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_own_token(client, auth_headers):
    created = await client.post("/api/v1/tokens", json={"name": "temp"}, headers=auth_headers)
    token = created.json()["token"]

    response = await client.delete(f"/api/v1/tokens/{token['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Token deleted successfully"}
    revoked = await client.get("/api/v1/tokens", headers={"Authorization": f"Bearer {token['token']}"})
    assert revoked.status_code == 401
    assert revoked.json()["error"] == "InvalidCredential"


@pytest.mark.asyncio
async def test_delete_other_users_token_is_not_found(client, auth_headers, make_user, make_token):
    """Deleting someone else's token fails and their token keeps working"""
    other = await make_user("other@example.com")
    other_raw = await make_token(other, name="theirs")
    other_headers = {"Authorization": f"Bearer {other_raw}"}
    listing = await client.get("/api/v1/tokens", headers=other_headers)
    other_token_id = listing.json()["tokens"][0]["id"]

    response = await client.delete(f"/api/v1/tokens/{other_token_id}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "NotFound", "detail": "Token not found"}
    still_valid = await client.get("/api/v1/tokens", headers=other_headers)
    assert still_valid.status_code == 200


@pytest.mark.asyncio
async def test_tokens_require_authentication(client):
    response = await client.get("/api/v1/tokens")

    assert response.status_code == 401
    assert response.json()["error"] == "MissingCredential"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_unknown_token_is_invalid(client):
    response = await client.get("/api/v1/tokens", headers={"Authorization": "Bearer sbom_doesnotexist"})

    assert response.status_code == 401
    assert response.json()["error"] == "InvalidCredential"


@pytest.mark.asyncio
async def test_access_token_exchange(client, auth_headers, user):
    response = await client.post("/api/v1/auth/token", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    # The short-lived token is accepted by the local verifier
    listing = await client.get("/api/v1/tokens", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert listing.status_code == 200
    assert [t["name"] for t in listing.json()["tokens"]] == ["ci"]
