"""
Pydantic schemas for the resolved entitlement.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mhm_client.schemas.dates import coerce_datetime


class PremiumSource(str, Enum):
    """Which input decided the premium status."""
    ADMIN = "admin"
    BACKEND = "backend"
    REVENUECAT = "revenuecat"
    NONE = "none"


class PlanType(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"
    UNKNOWN = "unknown"


class SubscriptionStatus(str, Enum):
    """Coarse status the screens switch on."""
    LOADING = "loading"
    PREMIUM = "premium"
    FREE = "free"


class ProductIds(BaseModel):
    """Billing SKUs mapped to plan types."""
    model_config = ConfigDict(frozen=True)

    monthly: str = Field(..., min_length=1, description="Monthly subscription product identifier")
    annual: str = Field(..., min_length=1, description="Annual subscription product identifier")

    def plan_type_for(self, product_id: Optional[str]) -> PlanType:
        """Map a product id to a plan type by exact equality."""
        if product_id is None:
            return PlanType.UNKNOWN
        if product_id == self.monthly:
            return PlanType.MONTHLY
        if product_id == self.annual:
            return PlanType.ANNUAL
        return PlanType.UNKNOWN


class EntitlementState(BaseModel):
    """Resolved premium/free status of the current user."""
    model_config = ConfigDict(frozen=True)

    is_premium: bool = Field(False, description="Final resolved premium status")
    premium_source: PremiumSource = Field(PremiumSource.NONE, description="Input that determined the status")
    plan_type: PlanType = Field(PlanType.UNKNOWN, description="Plan derived from the active product id")
    active_product_id: Optional[str] = Field(None, description="Active billing product identifier")
    renewal_date: Optional[datetime] = Field(None, description="Renewal or expiration date")
    will_renew: bool = Field(False, description="Auto-renew flag reported by billing")
    is_admin: bool = Field(False, description="Admin accounts have unlimited access")

    @field_validator("renewal_date", mode="before")
    @classmethod
    def _degrade_bad_date(cls, v):
        return coerce_datetime(v)

    @property
    def has_unlimited_access(self) -> bool:
        return self.is_premium or self.is_admin

    def subscription_status(self, loading: bool = False) -> SubscriptionStatus:
        if loading:
            return SubscriptionStatus.LOADING
        if self.has_unlimited_access:
            return SubscriptionStatus.PREMIUM
        return SubscriptionStatus.FREE

    @classmethod
    def free(cls) -> "EntitlementState":
        return cls()
