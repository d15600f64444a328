"""
RevenueCat provider implementation over the REST API (v1).
"""
import logging
import uuid
from typing import Any, Dict, Optional
from urllib.parse import quote
import httpx

from mhm_client.billing.provider import BillingProvider
from mhm_client.core.config import (
    HTTP_TIMEOUT,
    PLATFORM,
    REVENUECAT_API_URL,
    get_revenuecat_api_key,
)
from mhm_client.core.exceptions import BillingSdkError
from mhm_client.schemas.billing import (
    BillingCustomerInfo,
    BillingPackage,
    EntitlementRecord,
    Offering,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "xxxxxxxxx"


def new_anonymous_id() -> str:
    return f"$RCAnonymousID:{uuid.uuid4().hex}"


def parse_subscriber(payload: Dict[str, Any]) -> BillingCustomerInfo:
    """Normalize a /v1/subscribers response into BillingCustomerInfo."""
    subscriber = payload.get("subscriber") or {}
    subscriptions = subscriber.get("subscriptions") or {}

    records = []
    for identifier, raw in (subscriber.get("entitlements") or {}).items():
        raw = raw or {}
        product_id = raw.get("product_identifier") or ""
        subscription = subscriptions.get(product_id) or {}
        will_renew = (
            subscription.get("unsubscribe_detected_at") is None
            and subscription.get("billing_issues_detected_at") is None
        )
        records.append(EntitlementRecord(
            identifier=identifier,
            product_identifier=product_id,
            expires_date=raw.get("expires_date"),
            purchase_date=raw.get("purchase_date"),
            will_renew=will_renew,
        ))

    return BillingCustomerInfo(
        original_app_user_id=subscriber.get("original_app_user_id") or "",
        entitlements=records,
    )


def parse_offerings(payload: Dict[str, Any]) -> Optional[Offering]:
    """Pick the current offering out of a /offerings response."""
    current_id = payload.get("current_offering_id")
    if not current_id:
        return None
    for raw in payload.get("offerings") or []:
        if raw.get("identifier") != current_id:
            continue
        packages = [
            BillingPackage(
                identifier=p.get("identifier", ""),
                product_identifier=p.get("platform_product_identifier", ""),
                offering_identifier=current_id,
            )
            for p in raw.get("packages") or []
        ]
        return Offering(
            identifier=current_id,
            description=raw.get("description") or "",
            packages=packages,
        )
    return None


class RevenueCatProvider(BillingProvider):
    """RevenueCat subscriber API client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        platform: str = PLATFORM,
        base_url: str = REVENUECAT_API_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else get_revenuecat_api_key(platform)
        self.platform = platform
        self._configured = False
        self._app_user_id: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return self._configured

    @property
    def app_user_id(self) -> Optional[str]:
        return self._app_user_id

    async def aclose(self) -> None:
        await self._client.aclose()

    async def configure(self) -> bool:
        if self._configured:
            logger.debug("RevenueCat: already configured")
            return True
        if not self.api_key or PLACEHOLDER_MARKER in self.api_key:
            logger.warning("RevenueCat: API key not configured - billing disabled")
            return False

        self._app_user_id = new_anonymous_id()
        self._configured = True
        logger.info(f"RevenueCat: configured for platform={self.platform}")
        return True

    def _require_configured(self) -> str:
        if not self._configured or not self._app_user_id:
            raise BillingSdkError("Billing service not configured")
        return self._app_user_id

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Platform": self.platform,
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.request(method, f"/v1{path}", json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"RevenueCat: transport error on {path}: {e}")
            raise BillingSdkError(f"Billing service unreachable: {e}") from e

        if response.status_code >= 400:
            message = f"Billing service answered {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
            except ValueError:
                pass
            logger.warning(f"RevenueCat: {path} failed: {message}")
            raise BillingSdkError(message)

        try:
            data = response.json()
        except ValueError as e:
            raise BillingSdkError("Billing service returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BillingSdkError("Billing service returned an unexpected payload")
        return data

    async def _fetch_subscriber(self, app_user_id: str) -> BillingCustomerInfo:
        data = await self._call("GET", f"/subscribers/{quote(app_user_id, safe='')}")
        info = parse_subscriber(data)
        if not info.original_app_user_id:
            info = info.model_copy(update={"original_app_user_id": app_user_id})
        return info

    async def log_in(self, app_user_id: str) -> BillingCustomerInfo:
        self._require_configured()
        logger.info(f"RevenueCat: logging in app_user_id={app_user_id}")
        info = await self._fetch_subscriber(app_user_id)
        self._app_user_id = app_user_id
        return info

    async def log_out(self) -> None:
        self._require_configured()
        self._app_user_id = new_anonymous_id()
        logger.info("RevenueCat: logged out, using anonymous id")

    async def get_customer_info(self) -> BillingCustomerInfo:
        app_user_id = self._require_configured()
        return await self._fetch_subscriber(app_user_id)

    async def get_offerings(self) -> Optional[Offering]:
        app_user_id = self._require_configured()
        data = await self._call("GET", f"/subscribers/{quote(app_user_id, safe='')}/offerings")
        return parse_offerings(data)

    async def purchase_package(self, package: BillingPackage, fetch_token: str) -> BillingCustomerInfo:
        app_user_id = self._require_configured()
        if not fetch_token:
            # No store receipt means the user closed the store sheet
            raise BillingSdkError("Purchase cancelled", user_cancelled=True)

        logger.info(
            f"RevenueCat: posting receipt for package={package.identifier}, "
            f"product={package.product_identifier}, app_user_id={app_user_id}"
        )
        data = await self._call("POST", "/receipts", json={
            "app_user_id": app_user_id,
            "fetch_token": fetch_token,
            "product_id": package.product_identifier,
        })
        return parse_subscriber(data)

    async def restore_purchases(self) -> BillingCustomerInfo:
        app_user_id = self._require_configured()
        logger.info(f"RevenueCat: restoring purchases for app_user_id={app_user_id}")
        return await self._fetch_subscriber(app_user_id)
