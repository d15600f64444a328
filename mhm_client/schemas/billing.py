"""
Pydantic schemas for billing SDK data.

SdkState is a tagged union: the plan resolver matches on the variant instead
of probing optional attributes.
"""
from datetime import datetime, timezone
from typing import Annotated, FrozenSet, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mhm_client.schemas.dates import coerce_datetime


class EntitlementRecord(BaseModel):
    """One entitlement as reported by the billing provider."""
    identifier: str = Field(..., description="Entitlement identifier")
    product_identifier: str = Field("", description="Product that unlocked the entitlement")
    expires_date: Optional[datetime] = Field(None, description="Expiration, None for lifetime")
    purchase_date: Optional[datetime] = Field(None, description="Latest purchase date")
    will_renew: bool = Field(True, description="False once cancellation or billing issues are detected")

    @field_validator("expires_date", "purchase_date", mode="before")
    @classmethod
    def _degrade_bad_date(cls, v):
        return coerce_datetime(v)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.expires_date is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.expires_date > now


class BillingCustomerInfo(BaseModel):
    """Customer info as returned by a BillingProvider."""
    original_app_user_id: str = Field(..., description="App user id the provider knows the customer by")
    entitlements: List[EntitlementRecord] = Field(default_factory=list)

    def active_entitlements(self, now: Optional[datetime] = None) -> List[EntitlementRecord]:
        return [e for e in self.entitlements if e.is_active(now)]


class BillingPackage(BaseModel):
    """A purchasable package inside an offering."""
    identifier: str = Field(..., description="Package identifier, e.g. $rc_monthly")
    product_identifier: str = Field(..., description="Store product identifier")
    offering_identifier: Optional[str] = None


class Offering(BaseModel):
    identifier: str
    description: str = ""
    packages: List[BillingPackage] = Field(default_factory=list)

    def package_for(self, product_id: str) -> Optional[BillingPackage]:
        for package in self.packages:
            if package.product_identifier == product_id:
                return package
        return None


class PurchaseOutcome(BaseModel):
    """Result of a user-initiated purchase, for the success/failure dialog."""
    success: bool
    user_cancelled: bool = False
    error: Optional[str] = Field(None, description="Short reason shown in the failure dialog")


class SdkConfigured(BaseModel):
    """Billing SDK reachable; customer info normalized."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["configured"] = "configured"
    app_user_id: Optional[str] = None
    active_entitlements: FrozenSet[str] = Field(default_factory=frozenset)
    active_product_id: Optional[str] = None
    renewal_date: Optional[datetime] = None
    will_renew: bool = False

    @field_validator("renewal_date", mode="before")
    @classmethod
    def _degrade_bad_date(cls, v):
        return coerce_datetime(v)

    @property
    def has_active_entitlement(self) -> bool:
        return bool(self.active_entitlements)


class SdkNotConfigured(BaseModel):
    """Billing SDK missing keys or never configured."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["not_configured"] = "not_configured"


class SdkError(BaseModel):
    """Billing SDK configured but the last query failed."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    reason: str = ""


SdkState = Annotated[
    Union[SdkConfigured, SdkNotConfigured, SdkError],
    Field(discriminator="kind"),
]
