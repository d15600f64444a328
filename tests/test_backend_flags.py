"""
Tests for backend admin/premium flag retrieval.
"""
import httpx
import pytest

from mhm_client.api.client import ApiClient, InMemoryTokenStore
from mhm_client.api.flags import BackendFlagFetcher
from mhm_client.core.exceptions import AuthError, NetworkError
from mhm_client.schemas.auth import User


async def test_fetch_flags_free_user(logged_in_client, fake_backend):
    """Test a regular account reports no flags."""
    flags = await BackendFlagFetcher(logged_in_client).fetch_flags()
    assert flags.is_admin is False
    assert flags.is_premium is False
    assert "GET /api/user/subscription-status" in fake_backend.requests


async def test_fetch_flags_manual_premium(logged_in_client, fake_backend):
    """Test manual premium with its expiration date."""
    fake_backend.flags["42"] = {
        "is_admin": False,
        "is_premium": True,
        "premium_expires_at": "2030-01-01T00:00:00Z",
    }
    flags = await BackendFlagFetcher(logged_in_client).fetch_flags()
    assert flags.is_premium is True
    assert flags.premium_expires_at.year == 2030


async def test_fetch_flags_malformed_date(logged_in_client, fake_backend):
    """Test a malformed expiration date does not fail the whole fetch."""
    fake_backend.flags["42"] = {"is_admin": True, "is_premium": None, "premium_expires_at": "31/12/2030"}
    flags = await BackendFlagFetcher(logged_in_client).fetch_flags()
    assert flags.is_admin is True
    assert flags.is_premium is False
    assert flags.premium_expires_at is None


async def test_no_session_raises_auth_error(api_client, fake_backend):
    """Test fetching without a session never hits the backend."""
    fetcher = BackendFlagFetcher(api_client)
    assert fetcher.has_session() is False
    with pytest.raises(AuthError):
        await fetcher.fetch_flags()
    assert fake_backend.requests == []


async def test_401_raises_auth_error_and_clears_session(logged_in_client, fake_backend):
    """Test a rejected session raises AuthError and clears the token store."""
    fake_backend.sessions.clear()
    fetcher = BackendFlagFetcher(logged_in_client)
    with pytest.raises(AuthError):
        await fetcher.fetch_flags()
    assert logged_in_client.token_store.get_token() is None
    assert fetcher.has_session() is False


async def test_server_error_raises_network_error(logged_in_client, fake_backend):
    """Test 5xx answers surface as NetworkError with the status."""
    fake_backend.status_override = 503
    with pytest.raises(NetworkError) as exc_info:
        await BackendFlagFetcher(logged_in_client).fetch_flags()
    assert exc_info.value.status_code == 503


async def test_unreachable_backend_raises_network_error():
    """Test transport failures surface as NetworkError."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = InMemoryTokenStore(token="token-42", user=User(id="42", email="rider@example.com"))
    async with ApiClient(base_url="http://backend.test", token_store=store,
                         transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(NetworkError):
            await BackendFlagFetcher(client).fetch_flags()
    assert store.get_token() == "token-42"


@pytest.mark.parametrize("body", [b"<html>oops</html>", b"[]", b'{"is_admin": "maybe"}'])
async def test_malformed_payload_raises_network_error(body):
    """Test non-JSON, non-object, and invalid payloads are network errors."""
    def handler(request):
        return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})

    store = InMemoryTokenStore(token="token-42", user=User(id="42", email="rider@example.com"))
    async with ApiClient(base_url="http://backend.test", token_store=store,
                         transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(NetworkError):
            await BackendFlagFetcher(client).fetch_flags()


async def test_admin_check(logged_in_client, fake_backend):
    """Test the admin screen check."""
    fetcher = BackendFlagFetcher(logged_in_client)
    assert await fetcher.fetch_admin_check() is False
    fake_backend.flags["42"] = {"is_admin": True}
    assert await fetcher.fetch_admin_check() is True
