"""
Tests for the live entitlement store.
Tests initialization, refresh ordering, teardown, and auth changes.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from mhm_client.api.flags import BackendFlagFetcher
from mhm_client.billing.entitlement_source import EntitlementSource
from mhm_client.core.exceptions import AuthError, BillingSdkError
from mhm_client.schemas.billing import BillingCustomerInfo, BillingPackage, EntitlementRecord
from mhm_client.schemas.entitlement import (
    EntitlementState,
    PlanType,
    PremiumSource,
    ProductIds,
    SubscriptionStatus,
)
from mhm_client.services.cancellation import CancelToken
from mhm_client.services.entitlement_store import StaticEntitlementStore, SubscriptionStore
from tests.fakes import FakeBillingProvider

PRODUCTS = ProductIds(monthly="mhm_monthly", annual="mhm_annual")
MONTHLY = BillingPackage(identifier="$rc_monthly", product_identifier="mhm_monthly")


async def wait_for_gate(provider):
    while provider.gates:
        await asyncio.sleep(0)


def premium_info(product_id="mhm_annual"):
    return BillingCustomerInfo(original_app_user_id="42", entitlements=[
        EntitlementRecord(
            identifier="My Horse Manager Pro",
            product_identifier=product_id,
            expires_date=datetime.now(timezone.utc) + timedelta(days=300),
        ),
    ])


@pytest.fixture
def store(fake_source, logged_in_client):
    store = SubscriptionStore(fake_source, BackendFlagFetcher(logged_in_client), products=PRODUCTS)
    yield store
    store.close()


@pytest.fixture
def anonymous_store(fake_source, api_client):
    store = SubscriptionStore(fake_source, BackendFlagFetcher(api_client), products=PRODUCTS)
    yield store
    store.close()


async def test_loading_until_first_resolution(store, rider):
    """Test the store reports loading until the first refresh lands."""
    assert store.loading is True
    assert store.subscription_status == SubscriptionStatus.LOADING
    await store.initialize(rider["user"])
    assert store.loading is False
    assert store.subscription_status == SubscriptionStatus.FREE


async def test_initialize_logs_in_and_loads_offerings(store, fake_provider, rider):
    """Test app start identifies the user and loads offerings."""
    fake_provider.info = premium_info()
    state = await store.initialize(rider["user"])
    assert fake_provider.calls[:3] == ["configure", "log_in:42", "get_offerings"]
    assert store.offerings.identifier == "default"
    assert store.user_id == "42"
    assert state.premium_source == PremiumSource.REVENUECAT
    assert state.plan_type == PlanType.ANNUAL


async def test_backend_admin_overrides_billing(store, fake_backend, fake_provider, rider):
    """Test admin flag from the backend wins over an active subscription."""
    fake_backend.flags["42"] = {"is_admin": True, "is_premium": False}
    fake_provider.info = premium_info()
    state = await store.initialize(rider["user"])
    assert state.premium_source == PremiumSource.ADMIN
    assert state.is_admin is True


async def test_unconfigured_billing_uses_backend_premium(logged_in_client, fake_backend, rider):
    """Test manual backend premium still applies when billing keys are missing."""
    fake_backend.flags["42"] = {"is_admin": False, "is_premium": True}
    provider = FakeBillingProvider(configured=False)
    store = SubscriptionStore(EntitlementSource(provider), BackendFlagFetcher(logged_in_client), products=PRODUCTS)
    state = await store.initialize(rider["user"])
    assert store.is_configured is False
    assert state.is_premium is True
    assert state.premium_source == PremiumSource.BACKEND
    assert "log_in:42" not in provider.calls


async def test_anonymous_user_skips_backend(anonymous_store, fake_backend):
    """Test no backend call is made without a session."""
    state = await anonymous_store.initialize()
    assert state == EntitlementState.free()
    assert fake_backend.requests == []
    assert anonymous_store.user_id is None


async def test_backend_unreachable_falls_back_to_billing(store, fake_backend, fake_provider, rider):
    """Test backend failures are ignored and billing still grants premium."""
    fake_provider.info = premium_info("mhm_monthly")
    fake_backend.status_override = 502
    state = await store.initialize(rider["user"])
    assert state.premium_source == PremiumSource.REVENUECAT
    assert state.plan_type == PlanType.MONTHLY


async def test_billing_error_falls_back_to_free(store, fake_provider, rider):
    """Test a failed billing query with no flags leaves the user free."""
    await store.initialize(rider["user"])
    fake_provider.error = BillingSdkError("offline")
    state = await store.refresh()
    assert state.is_premium is False
    assert store.loading is False


async def test_auth_error_resets_store(store, fake_backend, fake_provider, rider, logged_in_client):
    """Test a rejected session resets to free and clears the token store."""
    fake_provider.info = premium_info()
    await store.initialize(rider["user"])
    assert store.state.is_premium

    fake_backend.sessions.clear()
    with pytest.raises(AuthError):
        await store.refresh()
    assert store.state == EntitlementState.free()
    assert store.user_id is None
    assert logged_in_client.token_store.get_token() is None
    assert store.loading is False


async def test_stale_refresh_is_discarded(store, fake_provider, rider):
    """Test an older refresh finishing last never overwrites a newer result."""
    await store.initialize(rider["user"])
    gate = asyncio.Event()
    fake_provider.gates.append(gate)

    slow = asyncio.ensure_future(store.refresh())
    await wait_for_gate(fake_provider)
    assert store.loading is True

    fake_provider.info = premium_info()
    fast = await store.refresh()
    assert fast.premium_source == PremiumSource.REVENUECAT

    gate.set()
    stale = await slow
    assert stale.premium_source == PremiumSource.REVENUECAT
    assert store.state.is_premium is True
    assert store.loading is False


async def test_close_abandons_inflight_refresh(store, fake_provider, rider):
    """Test teardown stops a pending refresh from mutating the store."""
    await store.initialize(rider["user"])
    before = store.state
    gate = asyncio.Event()
    fake_provider.gates.append(gate)
    fake_provider.info = premium_info()

    pending = asyncio.ensure_future(store.refresh())
    await wait_for_gate(fake_provider)
    store.close()
    assert store.closed
    assert await pending == before
    assert store.state == before

    gate.set()
    assert await store.refresh() == before


async def test_caller_cancellation(store, fake_provider, rider):
    """Test a caller token cancels only its own refresh."""
    await store.initialize(rider["user"])
    gate = asyncio.Event()
    fake_provider.gates.append(gate)
    fake_provider.info = premium_info()
    token = CancelToken()

    pending = asyncio.ensure_future(store.refresh(token))
    await wait_for_gate(fake_provider)
    token.cancel()
    assert (await pending).is_premium is False
    assert store.closed is False

    assert (await store.refresh()).is_premium is True


async def test_logout_marks_inflight_refresh_stale(store, fake_provider, rider):
    """Test a refresh started before logout does not restore the old user's plan."""
    fake_provider.info = premium_info()
    await store.initialize(rider["user"])
    gate = asyncio.Event()
    fake_provider.gates.append(gate)

    pending = asyncio.ensure_future(store.refresh())
    await wait_for_gate(fake_provider)
    await store.on_auth_change(None)
    gate.set()
    await pending
    assert store.state == EntitlementState.free()
    assert "log_out" in fake_provider.calls


async def test_user_switch(store, fake_provider, fake_backend, rider, logged_in_client):
    """Test switching users logs out the previous one before logging in."""
    await store.initialize(rider["user"])
    token = fake_backend.add_user("43", "other@example.com")
    other = rider["user"].model_copy(update={"id": "43", "email": "other@example.com"})
    logged_in_client.token_store.save(token, other)
    fake_backend.flags["43"] = {"is_premium": True}

    state = await store.on_auth_change(other)
    calls = fake_provider.calls
    assert calls.index("log_out") < calls.index("log_in:43")
    assert store.user_id == "43"
    assert state.premium_source == PremiumSource.BACKEND


async def test_same_user_is_noop(store, fake_provider, rider):
    """Test re-reporting the same user does nothing."""
    await store.initialize(rider["user"])
    calls = len(fake_provider.calls)
    await store.on_auth_change(rider["user"])
    assert len(fake_provider.calls) == calls


async def test_purchase_refreshes(store, fake_provider, rider):
    """Test a successful purchase re-resolves the entitlement."""
    await store.initialize(rider["user"])
    fake_provider.info = premium_info("mhm_monthly")
    outcome = await store.purchase(MONTHLY, "store-receipt")
    assert outcome.success
    assert store.state.plan_type == PlanType.MONTHLY


async def test_purchase_cancelled_keeps_state(store, fake_provider, rider):
    """Test a cancelled purchase leaves the entitlement untouched."""
    await store.initialize(rider["user"])
    outcome = await store.purchase(MONTHLY, "")
    assert outcome.user_cancelled
    assert store.state.is_premium is False


async def test_purchase_requires_login(anonymous_store):
    """Test anonymous purchases are blocked."""
    await anonymous_store.initialize()
    outcome = await anonymous_store.purchase(MONTHLY, "store-receipt")
    assert outcome.error == "login_required"


async def test_restore(store, fake_provider, rider):
    """Test restore reports the result and refreshes the state."""
    await store.initialize(rider["user"])
    assert await store.restore() is False
    fake_provider.info = premium_info()
    assert await store.restore() is True
    assert store.state.premium_source == PremiumSource.REVENUECAT


async def test_load_offerings(store, rider):
    """Test offerings can be reloaded on demand."""
    await store.initialize(rider["user"])
    store.offerings = None
    offering = await store.load_offerings()
    assert offering is store.offerings


async def test_static_store():
    """Test the fixed store used by previews and tests."""
    static = StaticEntitlementStore(loading=True)
    assert static.subscription_status == SubscriptionStatus.LOADING
    premium = EntitlementState(is_premium=True, premium_source=PremiumSource.BACKEND)
    static.set(premium)
    assert static.subscription_status == SubscriptionStatus.PREMIUM
    assert await static.refresh() == premium
