"""
Free-tier limit enforcement.

Pure functions over an already resolved EntitlementState; no I/O. Screens
consult can_add_more() to render the add button and should_show_limit_popup()
before opening the add form.
"""
import logging
from typing import Mapping, Optional

from mhm_client.core.config import DEFAULT_LANGUAGE
from mhm_client.core.plan_limits import (
    PREMIUM_FEATURES,
    KindLike,
    get_free_limit,
    normalize_kind,
)
from mhm_client.schemas.entitlement import EntitlementState

logger = logging.getLogger(__name__)


LIMIT_REACHED_MESSAGES = {
    "es": "Has alcanzado el límite de {limit} del plan gratuito",
    "en": "You have reached the free plan limit of {limit}",
    "fr": "Vous avez atteint la limite de {limit} du forfait gratuit",
}

UPGRADE_MESSAGES = {
    "es": "Hazte Premium para añadir más {item}",
    "en": "Upgrade to Premium to add more {item}",
    "fr": "Passez à Premium pour ajouter plus de {item}",
}

ITEM_LABELS = {
    "es": {
        "horses": "caballos", "riders": "jinetes", "suppliers": "proveedores",
        "competitions": "competiciones", "palmares": "palmarés", "expenses": "gastos",
        "reminders": "recordatorios", "photos": "fotos",
    },
    "en": {
        "horses": "horses", "riders": "riders", "suppliers": "suppliers",
        "competitions": "competitions", "palmares": "achievements", "expenses": "expenses",
        "reminders": "reminders", "photos": "photos",
    },
    "fr": {
        "horses": "chevaux", "riders": "cavaliers", "suppliers": "fournisseurs",
        "competitions": "compétitions", "palmares": "palmarès", "expenses": "dépenses",
        "reminders": "rappels", "photos": "photos",
    },
}


def _check_count(current_count: int) -> None:
    if isinstance(current_count, bool) or not isinstance(current_count, int):
        raise ValueError(f"current_count must be an int, got {type(current_count).__name__}")
    if current_count < 0:
        raise ValueError(f"current_count must be >= 0, got {current_count}")


def can_add_more(
    entitlement: EntitlementState,
    kind: KindLike,
    current_count: int,
    limits: Optional[Mapping[str, int]] = None,
) -> bool:
    """
    Check whether another item of this kind may be created.

    Premium and admin users are never limited; free users may create items
    while below the free-tier limit.

    Raises:
        UnknownResourceKind: kind is not in the free-tier table
        ValueError: current_count is negative or not an int
    """
    free_limit = get_free_limit(kind, limits)
    _check_count(current_count)
    if entitlement.is_premium or entitlement.is_admin:
        return True
    return current_count < free_limit


def should_show_limit_popup(
    entitlement: EntitlementState,
    kind: KindLike,
    current_count: int,
    loading: bool = False,
    limits: Optional[Mapping[str, int]] = None,
) -> bool:
    """
    Check whether the upgrade prompt should open instead of the add form.

    Always False while the entitlement is still loading, so a premium user
    never sees the prompt flash before their plan is known.
    """
    allowed = can_add_more(entitlement, kind, current_count, limits)
    if loading:
        return False
    if not allowed:
        logger.info(
            f"Free limit reached: kind={normalize_kind(kind)}, count={current_count}"
        )
    return not allowed


def get_limit(
    entitlement: EntitlementState,
    kind: KindLike,
    limits: Optional[Mapping[str, int]] = None,
) -> Optional[int]:
    """Limit that applies to this user, None for unlimited."""
    free_limit = get_free_limit(kind, limits)
    if entitlement.has_unlimited_access:
        return None
    return free_limit


def can_use_feature(entitlement: EntitlementState, feature: str) -> bool:
    """Check access to a premium-only function (CSV export, advanced reports...)."""
    if feature not in PREMIUM_FEATURES:
        raise ValueError(f"Unknown premium feature: {feature!r}")
    return entitlement.has_unlimited_access


def limit_message(
    kind: KindLike,
    language: str = DEFAULT_LANGUAGE,
    limits: Optional[Mapping[str, int]] = None,
) -> str:
    """Title of the limit-reached dialog."""
    limit = get_free_limit(kind, limits)
    template = LIMIT_REACHED_MESSAGES.get(language, LIMIT_REACHED_MESSAGES["es"])
    return template.replace("{limit}", str(limit))


def upgrade_message(kind: KindLike, language: str = DEFAULT_LANGUAGE) -> str:
    """Body of the limit-reached dialog."""
    key = normalize_kind(kind)
    labels = ITEM_LABELS.get(language, ITEM_LABELS["es"])
    template = UPGRADE_MESSAGES.get(language, UPGRADE_MESSAGES["es"])
    return template.replace("{item}", labels[key])
