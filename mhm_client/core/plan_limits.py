"""
Free-tier limits configuration.

Default table is the one the mobile client ships. Deployments may override
single entries through MHM_FREE_LIMITS; evaluators also accept an explicit
table so callers can inject their own.
"""
import json
import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from mhm_client.core import config
from mhm_client.core.exceptions import UnknownResourceKind
from mhm_client.schemas.entitlement import ProductIds

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    HORSES = "horses"
    RIDERS = "riders"
    SUPPLIERS = "suppliers"
    COMPETITIONS = "competitions"
    PALMARES = "palmares"
    EXPENSES = "expenses"
    REMINDERS = "reminders"
    PHOTOS = "photos"  # per item, not per account


# Max items a free user may create, per kind
DEFAULT_FREE_LIMITS: Dict[str, int] = {
    "horses": 1,
    "riders": 1,
    "suppliers": 1,
    "competitions": 1,
    "palmares": 1,
    "expenses": 3,
    "reminders": 1,
    "photos": 1,
}

# Premium-only functions, locked for free users
PREMIUM_FEATURES: List[str] = [
    "export_csv",
    "advanced_reports",
    "unlimited_items",
    "unlimited_photos",
]

KindLike = Union[ResourceKind, str]


def normalize_kind(kind: KindLike) -> str:
    """Return the table key for a kind, raising UnknownResourceKind if invalid."""
    value = kind.value if isinstance(kind, ResourceKind) else kind
    if not isinstance(value, str) or value not in DEFAULT_FREE_LIMITS:
        raise UnknownResourceKind(f"Unknown resource kind: {kind!r}")
    return value


def load_free_limits(override: Optional[str] = None) -> Dict[str, int]:
    """
    Build the free-tier table, applying a JSON override on top of the defaults.

    Args:
        override: JSON object string; falls back to MHM_FREE_LIMITS

    Returns:
        Mapping of resource kind to free limit
    """
    limits = dict(DEFAULT_FREE_LIMITS)
    raw = override if override is not None else config.FREE_LIMITS_OVERRIDE
    if not raw:
        return limits

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed MHM_FREE_LIMITS: {e}")
        return limits

    if not isinstance(parsed, dict):
        logger.warning("Ignoring MHM_FREE_LIMITS: expected a JSON object")
        return limits

    for kind, value in parsed.items():
        if kind not in limits:
            logger.warning(f"Ignoring free limit for unknown kind '{kind}'")
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            logger.warning(f"Ignoring invalid free limit for '{kind}': {value!r}")
            continue
        limits[kind] = value
    return limits


def get_free_limit(kind: KindLike, limits: Optional[Mapping[str, int]] = None) -> int:
    """Free-tier limit for a kind; without a table the configured one (overrides applied) is used."""
    key = normalize_kind(kind)
    table = limits if limits is not None else load_free_limits()
    if key not in table:
        raise UnknownResourceKind(f"No free limit configured for '{key}'")
    return table[key]


def get_product_ids() -> ProductIds:
    """Configured subscription SKUs."""
    return ProductIds(monthly=config.PRODUCT_ID_MONTHLY, annual=config.PRODUCT_ID_ANNUAL)
