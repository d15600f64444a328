"""
Entitlement store shared by every screen.

Holds the last resolved EntitlementState and refreshes it from the billing
SDK and the backend. Screens receive the store explicitly; tests hand them a
StaticEntitlementStore instead.

Refresh ordering: every refresh takes a sequence number when it starts and
its result is applied only if no later-started refresh has been applied
already, so the most recent request wins regardless of which finishes
first. close() fires the teardown token; in-flight refreshes then stop
without touching the state.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from mhm_client.api.flags import BackendFlagFetcher
from mhm_client.billing.entitlement_source import EntitlementSource
from mhm_client.core.exceptions import AuthError, NetworkError
from mhm_client.core.plan_limits import get_product_ids
from mhm_client.schemas.auth import BackendFlags, User
from mhm_client.schemas.billing import BillingPackage, Offering, PurchaseOutcome, SdkState
from mhm_client.schemas.entitlement import EntitlementState, ProductIds, SubscriptionStatus
from mhm_client.services.cancellation import CancelToken, OperationCancelled
from mhm_client.services.plan_resolver import resolve

logger = logging.getLogger(__name__)


class EntitlementStore(ABC):
    """Read side of the entitlement, as consumed by screens and guards."""

    @property
    @abstractmethod
    def state(self) -> EntitlementState:
        pass

    @property
    @abstractmethod
    def loading(self) -> bool:
        pass

    @property
    def subscription_status(self) -> SubscriptionStatus:
        return self.state.subscription_status(self.loading)

    @abstractmethod
    async def refresh(self, cancel_token: Optional[CancelToken] = None) -> EntitlementState:
        pass


class StaticEntitlementStore(EntitlementStore):
    """Fixed entitlement, for previews and tests."""

    def __init__(self, state: Optional[EntitlementState] = None, loading: bool = False):
        self._state = state or EntitlementState.free()
        self._loading = loading

    @property
    def state(self) -> EntitlementState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._loading

    def set(self, state: EntitlementState, loading: bool = False) -> None:
        self._state = state
        self._loading = loading

    async def refresh(self, cancel_token: Optional[CancelToken] = None) -> EntitlementState:
        return self._state


class SubscriptionStore(EntitlementStore):
    """Live store backed by the billing SDK and the backend flags."""

    def __init__(
        self,
        source: EntitlementSource,
        flags: BackendFlagFetcher,
        products: Optional[ProductIds] = None,
    ):
        self.source = source
        self.flags = flags
        self.products = products or get_product_ids()
        self.offerings: Optional[Offering] = None

        self._state = EntitlementState.free()
        self._resolved_once = False
        self._in_flight = 0
        self._issued_seq = 0
        self._applied_seq = 0
        self._user_id: Optional[str] = None
        self._teardown = CancelToken()

    @property
    def state(self) -> EntitlementState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._in_flight > 0 or not self._resolved_once

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_configured(self) -> bool:
        return self.source.is_configured

    @property
    def closed(self) -> bool:
        return self._teardown.cancelled

    def close(self) -> None:
        """Tear down: pending refreshes are abandoned and never applied."""
        if not self._teardown.cancelled:
            logger.debug("Entitlement store closed")
        self._teardown.cancel()

    def _reset(self) -> None:
        self._state = EntitlementState.free()
        # Results of refreshes started before the reset are now stale
        self._applied_seq = self._issued_seq

    async def initialize(self, user: Optional[User] = None) -> EntitlementState:
        """
        App start: configure billing, identify the user, load offerings, resolve.

        Billing that cannot be configured still resolves from backend flags.
        """
        self._in_flight += 1
        try:
            configured = await self.source.configure()
            if configured:
                if user:
                    logger.info(f"Init: logging in to billing with user_id={user.id}")
                    await self._teardown.run(self.source.log_in(user.id))
                else:
                    logger.info("Init: no user logged in, using anonymous billing customer")
                self.offerings = await self._teardown.run(self.source.offerings())
            else:
                logger.info("Init: billing not configured, resolving from backend flags only")
            self._user_id = user.id if user else None
        except OperationCancelled:
            logger.debug("Init: abandoned after close")
            return self._state
        finally:
            self._in_flight -= 1

        return await self.refresh()

    async def refresh(self, cancel_token: Optional[CancelToken] = None) -> EntitlementState:
        """
        Re-resolve the entitlement.

        Billing failures and an unreachable backend degrade silently.

        Raises:
            AuthError: backend rejected the session; the store is reset to a
                logged-out state and the caller must force a new login
        """
        self._issued_seq += 1
        seq = self._issued_seq
        token = CancelToken(self._teardown, cancel_token)
        self._in_flight += 1
        try:
            sdk_state: SdkState = await token.run(self.source.current_state())
            flags = await self._fetch_flags(token)

            state = resolve(
                flags.is_admin,
                flags.is_premium,
                sdk_state,
                products=self.products,
                backend_expires_at=flags.premium_expires_at,
            )

            token.raise_if_cancelled()
            if seq <= self._applied_seq:
                logger.debug(f"Discarding stale refresh #{seq} (applied #{self._applied_seq})")
                return self._state

            self._state = state
            self._applied_seq = seq
            self._resolved_once = True
            logger.info(
                f"Entitlement resolved: premium={state.is_premium}, source={state.premium_source.value}, "
                f"plan={state.plan_type.value}, admin={state.is_admin}"
            )
            return state

        except OperationCancelled:
            logger.debug(f"Refresh #{seq} cancelled")
            return self._state
        except AuthError:
            if not token.cancelled:
                logger.info("Session rejected during refresh, resetting to logged-out state")
                self._reset()
                self._user_id = None
                self._resolved_once = True
            raise
        finally:
            self._in_flight -= 1
            token.release()

    async def _fetch_flags(self, token: CancelToken) -> BackendFlags:
        if not self.flags.has_session():
            return BackendFlags()
        try:
            return await token.run(self.flags.fetch_flags())
        except NetworkError as e:
            logger.warning(f"Backend flags unavailable, ignoring backend override: {e}")
            return BackendFlags()

    async def on_auth_change(self, user: Optional[User]) -> EntitlementState:
        """Follow login, logout, and user switches."""
        new_id = user.id if user else None
        previous_id = self._user_id

        if previous_id and not new_id:
            logger.info("Auth: user logged out")
            await self.logout()
            return self._state

        if new_id and new_id != previous_id:
            if previous_id:
                logger.info("Auth: user changed, logging out previous user first")
                await self.logout()
            logger.info(f"Auth: logging in to billing with user_id={new_id}")
            await self.source.log_in(new_id)
            self._user_id = new_id
            return await self.refresh()

        return self._state

    async def logout(self) -> None:
        await self.source.log_out()
        self._reset()
        self._user_id = None
        logger.info("Entitlement cleared after logout")

    async def load_offerings(self) -> Optional[Offering]:
        self.offerings = await self.source.offerings()
        return self.offerings

    async def purchase(self, package: BillingPackage, fetch_token: str) -> PurchaseOutcome:
        """User-initiated purchase; the outcome drives the result dialog."""
        self._in_flight += 1
        try:
            outcome = await self.source.purchase(package, fetch_token, self._user_id)
        finally:
            self._in_flight -= 1
        if outcome.success:
            await self.refresh()
        return outcome

    async def restore(self) -> bool:
        """User-initiated restore; True when an active subscription was found."""
        self._in_flight += 1
        try:
            restored = await self.source.restore(self._user_id)
        finally:
            self._in_flight -= 1
        await self.refresh()
        return restored
