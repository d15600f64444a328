"""
Backend admin/premium flag retrieval.
"""
import logging
from typing import Any, Dict

import httpx
from pydantic import ValidationError as PydanticValidationError

from mhm_client.api.client import ApiClient
from mhm_client.core.exceptions import AuthError, NetworkError
from mhm_client.schemas.auth import BackendFlags

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUS_ENDPOINT = "/api/user/subscription-status"
ADMIN_CHECK_ENDPOINT = "/api/admin/check"


def _read_json(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
    if response.status_code == 401:
        raise AuthError("Session rejected by backend")
    if response.status_code >= 400:
        logger.warning(f"Unexpected status {response.status_code} from {endpoint}")
        raise NetworkError(
            f"Backend answered {response.status_code} for {endpoint}",
            status_code=response.status_code,
        )
    try:
        data = response.json()
    except ValueError as e:
        raise NetworkError(f"Invalid JSON from {endpoint}", status_code=response.status_code) from e
    if not isinstance(data, dict):
        raise NetworkError(f"Expected a JSON object from {endpoint}", status_code=response.status_code)
    return data


class BackendFlagFetcher:
    """Reads the user's admin and premium flags from the backend."""

    def __init__(self, client: ApiClient):
        self.client = client

    def has_session(self) -> bool:
        return self.client.get_token() is not None

    async def fetch_flags(self) -> BackendFlags:
        """
        Fetch is_admin / is_premium for the logged-in user.

        Raises:
            AuthError: no stored session, or the backend answered 401
            NetworkError: transport failure or unexpected response
        """
        if not self.client.get_token():
            raise AuthError("No session token stored")

        response = await self.client.get(SUBSCRIPTION_STATUS_ENDPOINT)
        data = _read_json(response, SUBSCRIPTION_STATUS_ENDPOINT)

        try:
            flags = BackendFlags.model_validate(data)
        except PydanticValidationError as e:
            raise NetworkError(f"Malformed subscription status payload: {e}") from e

        logger.info(
            f"Backend flags: is_admin={flags.is_admin}, is_premium={flags.is_premium}"
        )
        return flags

    async def fetch_admin_check(self) -> bool:
        """Admin screen check; same error mapping as fetch_flags()."""
        if not self.client.get_token():
            raise AuthError("No session token stored")

        response = await self.client.get(ADMIN_CHECK_ENDPOINT)
        data = _read_json(response, ADMIN_CHECK_ENDPOINT)
        return bool(data.get("is_admin", False))
