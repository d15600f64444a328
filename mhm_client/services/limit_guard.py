"""
"Before add" check used by the CRUD screens.
"""
import logging
from typing import Mapping, Optional
from pydantic import BaseModel, Field

from mhm_client.api.resources import ResourceCounter
from mhm_client.core.config import DEFAULT_LANGUAGE
from mhm_client.core.gating import (
    can_add_more,
    get_limit,
    limit_message,
    should_show_limit_popup,
    upgrade_message,
)
from mhm_client.core.plan_limits import KindLike, load_free_limits, normalize_kind
from mhm_client.services.entitlement_store import EntitlementStore

logger = logging.getLogger(__name__)


class LimitDecision(BaseModel):
    """What the screen should do when the user taps "add"."""
    kind: str
    allowed: bool = Field(..., description="Open the add form")
    show_popup: bool = Field(..., description="Show the upgrade prompt instead")
    current_count: int
    limit: Optional[int] = Field(None, description="Applicable limit, None for unlimited")
    title: Optional[str] = Field(None, description="Upgrade prompt title")
    message: Optional[str] = Field(None, description="Upgrade prompt body")


class LimitGuard:
    """Combines the shared entitlement store with current resource counts."""

    def __init__(
        self,
        store: EntitlementStore,
        counter: Optional[ResourceCounter] = None,
        limits: Optional[Mapping[str, int]] = None,
        language: str = DEFAULT_LANGUAGE,
    ):
        self.store = store
        self.counter = counter
        self.limits = limits if limits is not None else load_free_limits()
        self.language = language

    async def check_before_add(self, kind: KindLike, current_count: Optional[int] = None) -> LimitDecision:
        """
        Decide whether a new item of this kind may be created.

        While the entitlement is loading the add goes ahead and no prompt is
        shown; the plan is not known yet.

        Raises:
            ValueError: no count given and no counter available for this kind
            AuthError / NetworkError: counting against the backend failed
        """
        key = normalize_kind(kind)
        if current_count is None:
            if self.counter is None:
                raise ValueError("current_count is required without a ResourceCounter")
            current_count = await self.counter.count(key)

        state = self.store.state
        loading = self.store.loading
        allowed = loading or can_add_more(state, key, current_count, self.limits)
        show_popup = should_show_limit_popup(state, key, current_count, loading, self.limits)

        decision = LimitDecision(
            kind=key,
            allowed=allowed,
            show_popup=show_popup,
            current_count=current_count,
            limit=get_limit(state, key, self.limits),
        )
        logger.debug(
            f"Before add: kind={key}, count={current_count}, allowed={allowed}, loading={loading}"
        )
        if show_popup:
            decision.title = limit_message(key, self.language, self.limits)
            decision.message = upgrade_message(key, self.language)
        return decision
