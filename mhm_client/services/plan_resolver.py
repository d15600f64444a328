"""
Plan resolution.

Merges the admin flag, the backend premium flag and the billing SDK state
into one EntitlementState. Precedence, first match wins:

1. admin          -> premium, source=admin, billing fields cleared
2. backend flag   -> premium, source=backend
3. active billing -> premium, source=revenuecat
4. otherwise      -> free, source=none

Pure: same inputs give the same state, nothing is read or written elsewhere.
"""
from datetime import datetime
from typing import Optional, Union

from mhm_client.core.plan_limits import get_product_ids
from mhm_client.schemas.billing import SdkConfigured, SdkError, SdkNotConfigured, SdkState
from mhm_client.schemas.dates import EPOCH_SECONDS, coerce_datetime
from mhm_client.schemas.entitlement import (
    EntitlementState,
    PlanType,
    PremiumSource,
    ProductIds,
)


def _billing_fields(sdk_state: SdkState):
    """(product id, renewal date, will renew, active) from any SdkState variant."""
    if isinstance(sdk_state, SdkConfigured):
        return (
            sdk_state.active_product_id,
            sdk_state.renewal_date,
            sdk_state.will_renew,
            sdk_state.has_active_entitlement,
        )
    if isinstance(sdk_state, (SdkNotConfigured, SdkError)):
        return None, None, False, False
    raise TypeError(f"Unsupported billing state: {type(sdk_state).__name__}")


def resolve(
    admin_flag: bool,
    backend_premium_flag: bool,
    sdk_state: SdkState,
    *,
    products: Optional[ProductIds] = None,
    backend_expires_at: Union[datetime, str, int, None] = None,
) -> EntitlementState:
    """
    Resolve the entitlement from its three sources.

    Args:
        admin_flag: Backend is_admin flag
        backend_premium_flag: Backend is_premium flag (manual premium)
        sdk_state: Normalized billing SDK state
        products: Monthly/annual SKUs; defaults to configuration
        backend_expires_at: Manual premium expiration from the backend (ISO string, epoch seconds, or datetime)

    Returns:
        EntitlementState with exactly one authoritative premium_source
    """
    products = products or get_product_ids()
    product_id, renewal_date, will_renew, active = _billing_fields(sdk_state)

    if admin_flag:
        return EntitlementState(
            is_premium=True,
            premium_source=PremiumSource.ADMIN,
            plan_type=PlanType.UNKNOWN,
            is_admin=True,
        )

    if backend_premium_flag:
        return EntitlementState(
            is_premium=True,
            premium_source=PremiumSource.BACKEND,
            plan_type=products.plan_type_for(product_id),
            active_product_id=product_id,
            renewal_date=coerce_datetime(backend_expires_at, epoch_unit=EPOCH_SECONDS) or renewal_date,
            will_renew=will_renew if active else False,
        )

    if active:
        return EntitlementState(
            is_premium=True,
            premium_source=PremiumSource.REVENUECAT,
            plan_type=products.plan_type_for(product_id),
            active_product_id=product_id,
            renewal_date=renewal_date,
            will_renew=will_renew,
        )

    return EntitlementState(
        is_premium=False,
        premium_source=PremiumSource.NONE,
        plan_type=PlanType.UNKNOWN,
    )
