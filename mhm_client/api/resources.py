"""
Per-kind resource counts read from the backend list endpoints.
"""
import logging
from typing import Dict, List

from mhm_client.api.client import ApiClient
from mhm_client.core.exceptions import AuthError, NetworkError
from mhm_client.core.plan_limits import KindLike, normalize_kind

logger = logging.getLogger(__name__)

# Expenses are split between horse and rider expense lists
LIST_ENDPOINTS: Dict[str, List[str]] = {
    "horses": ["/api/horses"],
    "riders": ["/api/riders"],
    "suppliers": ["/api/suppliers"],
    "competitions": ["/api/competitions"],
    "palmares": ["/api/palmares"],
    "expenses": ["/api/expenses", "/api/rider-expenses"],
    "reminders": ["/api/reminders"],
}


class ResourceCounter:
    """Counts the user's items of a kind, as the screens do before adding."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def count(self, kind: KindLike) -> int:
        """
        Count items of a kind.

        Raises:
            UnknownResourceKind: invalid kind
            ValueError: kind has no list endpoint (photos are counted per item)
            AuthError: session rejected
            NetworkError: transport failure or unexpected response
        """
        key = normalize_kind(kind)
        endpoints = LIST_ENDPOINTS.get(key)
        if endpoints is None:
            raise ValueError(f"'{key}' has no list endpoint; pass the count explicitly")

        total = 0
        for endpoint in endpoints:
            response = await self.client.get(endpoint)
            if response.status_code == 401:
                raise AuthError("Session rejected by backend")
            if response.status_code >= 400:
                raise NetworkError(
                    f"Backend answered {response.status_code} for {endpoint}",
                    status_code=response.status_code,
                )
            try:
                items = response.json()
            except ValueError as e:
                raise NetworkError(f"Invalid JSON from {endpoint}") from e
            if not isinstance(items, list):
                raise NetworkError(f"Expected a JSON list from {endpoint}")
            total += len(items)

        logger.debug(f"Counted {total} {key}")
        return total
