"""
Pydantic schemas for the "My plan" screen.
"""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from mhm_client.schemas.entitlement import PlanType, PremiumSource, SubscriptionStatus


class PlanSummary(BaseModel):
    """Everything the "My plan" screen renders."""
    status: SubscriptionStatus = Field(..., description="loading, premium, or free")
    plan_label: str = Field(..., description="Localized plan title")
    premium_source: PremiumSource
    premium_source_label: str = Field("", description="Localized origin of premium, empty for free")
    plan_type: PlanType
    expiration_date: Optional[datetime] = Field(None, description="Never set for admins")
    will_renew: bool = False
    limits: Dict[str, Optional[int]] = Field(..., description="Per-kind limit, None for unlimited")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "free",
            "plan_label": "Plan gratuito",
            "premium_source": "none",
            "premium_source_label": "",
            "plan_type": "unknown",
            "expiration_date": None,
            "will_renew": False,
            "limits": {"horses": 1, "expenses": 3}
        }
    })
