"""
Tests for the backend HTTP client.
"""
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from jose import jwt

from mhm_client.api.client import ApiClient, InMemoryTokenStore
from mhm_client.core.exceptions import NetworkError
from mhm_client.schemas.auth import User


async def test_bearer_token_is_sent(logged_in_client, fake_backend):
    """Test the stored token authenticates requests."""
    response = await logged_in_client.get("/api/auth/me")
    assert response.status_code == 200
    assert response.json()["id"] == "42"


async def test_unauthenticated_request(api_client):
    """Test requests without a token reach the backend without Authorization."""
    response = await api_client.get("/api/auth/me")
    assert response.status_code == 401


async def test_401_clears_stored_session(logged_in_client, fake_backend):
    """Test a rejected token is dropped from the token store."""
    fake_backend.sessions.clear()
    response = await logged_in_client.get("/api/auth/me")
    assert response.status_code == 401
    assert logged_in_client.token_store.get_token() is None
    assert logged_in_client.token_store.get_user() is None


async def test_expired_jwt_is_not_sent(fake_backend):
    """Test an expired JWT is cleared before any request is made."""
    expired = jwt.encode(
        {"sub": "42", "exp": int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())},
        "secret",
        algorithm="HS256",
    )
    store = InMemoryTokenStore(token=expired, user=User(id="42", email="rider@example.com"))
    async with ApiClient(
        base_url="http://backend.test",
        token_store=store,
        transport=httpx.ASGITransport(app=fake_backend.app),
    ) as client:
        assert client.get_token() is None
        assert store.get_token() is None
        response = await client.get("/api/auth/me")
    assert response.status_code == 401


async def test_transport_failure_maps_to_network_error():
    """Test connection failures surface as NetworkError."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with ApiClient(base_url="http://backend.test", transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(NetworkError):
            await client.get("/api/horses")


async def test_timeout_maps_to_network_error():
    """Test timeouts surface as NetworkError."""
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with ApiClient(base_url="http://backend.test", transport=httpx.MockTransport(slow)) as client:
        with pytest.raises(NetworkError) as exc_info:
            await client.get("/api/horses")
    assert "Timeout" in str(exc_info.value)


def test_in_memory_token_store():
    """Test save, update, and clear."""
    store = InMemoryTokenStore()
    user = User(id="1", email="rider@example.com")
    store.save("token", user)
    assert store.get_token() == "token"
    store.update_user(user.model_copy(update={"language": "fr"}))
    assert store.get_user().language == "fr"
    store.clear()
    assert store.get_token() is None
    assert store.get_user() is None
