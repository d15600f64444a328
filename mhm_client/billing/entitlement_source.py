"""
Entitlement source: the billing provider's customer info in normalized form.

Expected failures never escape this module as exceptions. An unconfigured
provider yields SdkNotConfigured and a failed query yields SdkError, so the
plan resolver can fall back to backend flags.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from mhm_client.billing.provider import BillingProvider
from mhm_client.core.config import ENTITLEMENT_ID
from mhm_client.core.exceptions import BillingSdkError
from mhm_client.schemas.billing import (
    BillingCustomerInfo,
    BillingPackage,
    EntitlementRecord,
    Offering,
    PurchaseOutcome,
    SdkConfigured,
    SdkError,
    SdkNotConfigured,
    SdkState,
)

logger = logging.getLogger(__name__)


def select_best_entitlement(records: Iterable[EntitlementRecord]) -> Optional[EntitlementRecord]:
    """
    Pick the entitlement with the latest expiration.

    A dated entitlement wins over an undated one; when none carries a date
    the first one is kept.
    """
    records = list(records)
    if not records:
        return None

    best: Optional[EntitlementRecord] = None
    for record in records:
        if record.expires_date is not None:
            if best is None or best.expires_date is None or record.expires_date > best.expires_date:
                best = record
        elif best is None:
            best = record
    return best or records[0]


class EntitlementSource:
    """Adapter between a BillingProvider and the plan resolver."""

    def __init__(self, provider: BillingProvider, entitlement_id: Optional[str] = ENTITLEMENT_ID):
        self.provider = provider
        self.entitlement_id = entitlement_id or None

    @property
    def is_configured(self) -> bool:
        return self.provider.is_configured

    @property
    def app_user_id(self) -> Optional[str]:
        return self.provider.app_user_id

    async def configure(self) -> bool:
        try:
            return await self.provider.configure()
        except BillingSdkError as e:
            logger.warning(f"Billing configuration failed: {e}")
            return False

    def normalize(self, info: BillingCustomerInfo, now: Optional[datetime] = None) -> SdkConfigured:
        """Reduce raw customer info to the fields the resolver needs."""
        active = info.active_entitlements(now)
        if self.entitlement_id:
            active = [e for e in active if e.identifier == self.entitlement_id]

        best = select_best_entitlement(active)
        if best is None:
            logger.info("Billing: no active entitlements - free user")
            return SdkConfigured(app_user_id=info.original_app_user_id)

        logger.info(
            f"Billing: premium active, product={best.product_identifier}, "
            f"expires={best.expires_date}, will_renew={best.will_renew}"
        )
        return SdkConfigured(
            app_user_id=info.original_app_user_id,
            active_entitlements=frozenset(e.identifier for e in active),
            active_product_id=best.product_identifier or None,
            renewal_date=best.expires_date,
            will_renew=best.will_renew,
        )

    async def current_state(self) -> SdkState:
        """Current normalized billing state; never raises for SDK failures."""
        if not self.provider.is_configured:
            logger.debug("Billing: not configured, cannot fetch customer info")
            return SdkNotConfigured()
        try:
            info = await self.provider.get_customer_info()
        except BillingSdkError as e:
            logger.warning(f"Billing: error fetching customer info: {e}")
            return SdkError(reason=str(e))
        return self.normalize(info)

    async def log_in(self, user_id: str) -> SdkState:
        """Identify the customer by stable backend user id (never the e-mail)."""
        if not self.provider.is_configured:
            return SdkNotConfigured()
        try:
            info = await self.provider.log_in(user_id)
        except BillingSdkError as e:
            logger.warning(f"Billing: login failed for user_id={user_id}: {e}")
            return SdkError(reason=str(e))
        return self.normalize(info)

    async def log_out(self) -> None:
        if not self.provider.is_configured:
            return
        try:
            await self.provider.log_out()
        except BillingSdkError as e:
            logger.warning(f"Billing: logout failed: {e}")

    async def offerings(self) -> Optional[Offering]:
        if not self.provider.is_configured:
            return None
        try:
            return await self.provider.get_offerings()
        except BillingSdkError as e:
            logger.warning(f"Billing: error fetching offerings: {e}")
            return None

    async def restore(self, user_id: Optional[str]) -> bool:
        """
        Re-query purchases for the logged-in user.

        Returns:
            True if an active entitlement exists afterwards
        """
        if not user_id:
            logger.info("Billing: restore blocked, no logged in user")
            return False
        if not self.provider.is_configured:
            return False
        try:
            info = await self.provider.restore_purchases()
        except BillingSdkError as e:
            logger.warning(f"Billing: restore failed: {e}")
            return False
        return self.normalize(info).has_active_entitlement

    async def purchase(
        self,
        package: BillingPackage,
        fetch_token: str,
        user_id: Optional[str],
    ) -> PurchaseOutcome:
        """Buy a package for the logged-in user."""
        if not user_id:
            logger.info("Billing: purchase blocked, no logged in user")
            return PurchaseOutcome(success=False, error="login_required")
        if not self.provider.is_configured:
            return PurchaseOutcome(success=False, error="billing_unavailable")

        if self.provider.app_user_id != user_id:
            logger.info(
                f"Billing: app user id mismatch (current={self.provider.app_user_id}, "
                f"expected={user_id}), logging in again"
            )
            state = await self.log_in(user_id)
            if isinstance(state, SdkError):
                return PurchaseOutcome(success=False, error=state.reason)

        try:
            await self.provider.purchase_package(package, fetch_token)
        except BillingSdkError as e:
            if e.user_cancelled:
                logger.info("Billing: purchase cancelled by user")
                return PurchaseOutcome(success=False, user_cancelled=True)
            return PurchaseOutcome(success=False, error=str(e))

        logger.info(f"Billing: purchase completed for package={package.identifier}")
        return PurchaseOutcome(success=True)
