"""
Plan summary for the "My plan" screen.
"""
from typing import Mapping, Optional

from mhm_client.core.config import DEFAULT_LANGUAGE
from mhm_client.core.gating import get_limit
from mhm_client.core.plan_limits import load_free_limits
from mhm_client.schemas.entitlement import EntitlementState, PremiumSource
from mhm_client.schemas.plan import PlanSummary
from mhm_client.services.entitlement_store import EntitlementStore

PLAN_LABELS = {
    "es": {"premium": "Plan Premium", "free": "Plan gratuito", "loading": "Cargando..."},
    "en": {"premium": "Premium plan", "free": "Free plan", "loading": "Loading..."},
    "fr": {"premium": "Forfait Premium", "free": "Forfait gratuit", "loading": "Chargement..."},
}

SOURCE_LABELS = {
    "es": {"admin": "Premium de administrador", "backend": "Premium manual", "revenuecat": "Suscripción Premium"},
    "en": {"admin": "Admin premium", "backend": "Manual premium", "revenuecat": "Premium subscription"},
    "fr": {"admin": "Premium administrateur", "backend": "Premium manuel", "revenuecat": "Abonnement Premium"},
}


def build_plan_summary(
    state: EntitlementState,
    loading: bool = False,
    limits: Optional[Mapping[str, int]] = None,
    language: str = DEFAULT_LANGUAGE,
) -> PlanSummary:
    """
    Build the "My plan" view of an entitlement.

    Admins never show an expiration date; everyone else shows the renewal
    date the resolver kept (billing first, then manual backend premium).
    """
    limits = limits if limits is not None else load_free_limits()
    status = state.subscription_status(loading)
    plan_labels = PLAN_LABELS.get(language, PLAN_LABELS["es"])
    source_labels = SOURCE_LABELS.get(language, SOURCE_LABELS["es"])

    if state.premium_source == PremiumSource.NONE:
        source_label = ""
    else:
        source_label = source_labels[state.premium_source.value]

    return PlanSummary(
        status=status,
        plan_label=plan_labels[status.value],
        premium_source=state.premium_source,
        premium_source_label=source_label,
        plan_type=state.plan_type,
        expiration_date=None if state.is_admin else state.renewal_date,
        will_renew=state.will_renew,
        limits={kind: get_limit(state, kind, limits) for kind in limits},
    )


def summary_for_store(
    store: EntitlementStore,
    limits: Optional[Mapping[str, int]] = None,
    language: str = DEFAULT_LANGUAGE,
) -> PlanSummary:
    return build_plan_summary(store.state, store.loading, limits, language)
