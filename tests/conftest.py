"""
Shared fixtures wiring the fakes to the real clients.
"""
import httpx
import pytest

from mhm_client.api.client import ApiClient, InMemoryTokenStore
from mhm_client.billing.entitlement_source import EntitlementSource
from mhm_client.billing.revenuecat_provider import RevenueCatProvider
from mhm_client.schemas.auth import User
from tests.fakes import BACKEND_URL, REVENUECAT_URL, FakeBackend, FakeBillingProvider, FakeRevenueCat


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_revenuecat():
    return FakeRevenueCat()


@pytest.fixture
def rider(fake_backend):
    """Registered user with a live session token."""
    token = fake_backend.add_user("42", "rider@example.com")
    return {"token": token, "user": User(id="42", email="rider@example.com", name="Rider")}


@pytest.fixture
async def api_client(fake_backend):
    client = ApiClient(
        base_url=BACKEND_URL,
        token_store=InMemoryTokenStore(),
        transport=httpx.ASGITransport(app=fake_backend.app),
    )
    yield client
    await client.aclose()


@pytest.fixture
async def logged_in_client(api_client, rider):
    api_client.token_store.save(rider["token"], rider["user"])
    return api_client


@pytest.fixture
async def revenuecat_provider(fake_revenuecat):
    provider = RevenueCatProvider(
        api_key="appl_test_key",
        platform="ios",
        base_url=REVENUECAT_URL,
        transport=httpx.ASGITransport(app=fake_revenuecat.app),
    )
    yield provider
    await provider.aclose()


@pytest.fixture
def fake_provider():
    return FakeBillingProvider()


@pytest.fixture
def fake_source(fake_provider):
    return EntitlementSource(fake_provider)
