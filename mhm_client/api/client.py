"""
Authenticated HTTP client for the My Horse Manager backend.

Wraps httpx.AsyncClient: attaches the stored bearer token, maps transport
failures to NetworkError, and clears the stored session on 401.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import httpx

from mhm_client.core.config import BACKEND_URL, HTTP_TIMEOUT
from mhm_client.core.exceptions import NetworkError
from mhm_client.core.logging_config import sanitize_log_data
from mhm_client.core.security import token_is_expired
from mhm_client.schemas.auth import User

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Where the session token and user record live between calls."""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        pass

    @abstractmethod
    def get_user(self) -> Optional[User]:
        pass

    @abstractmethod
    def save(self, token: str, user: User) -> None:
        pass

    @abstractmethod
    def update_user(self, user: User) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryTokenStore(TokenStore):
    """Process-lifetime token store."""

    def __init__(self, token: Optional[str] = None, user: Optional[User] = None):
        self._token = token
        self._user = user

    def get_token(self) -> Optional[str]:
        return self._token

    def get_user(self) -> Optional[User]:
        return self._user

    def save(self, token: str, user: User) -> None:
        self._token = token
        self._user = user

    def update_user(self, user: User) -> None:
        self._user = user

    def clear(self) -> None:
        self._token = None
        self._user = None


class ApiClient:
    """Thin async client over the backend REST API."""

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        token_store: Optional[TokenStore] = None,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store or InMemoryTokenStore()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def get_token(self) -> Optional[str]:
        """Stored token, or None when missing or already expired."""
        token = self.token_store.get_token()
        if token and token_is_expired(token):
            logger.info("Stored session token expired, clearing session")
            self.token_store.clear()
            return None
        return token

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """
        Send a request to the backend.

        Returns:
            The response, whatever its status

        Raises:
            NetworkError: transport failure or timeout
        """
        headers = {"Content-Type": "application/json"}
        token = self.get_token() if authenticated else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(
            f"API Request: {method} {endpoint}, token={'present' if token else 'missing'}, "
            f"headers={sanitize_log_data(headers)}"
        )

        try:
            response = await self._client.request(
                method, endpoint, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning(f"API timeout: {method} {endpoint}: {e}")
            raise NetworkError(f"Timeout calling {endpoint}") from e
        except httpx.TransportError as e:
            logger.warning(f"API transport error: {method} {endpoint}: {e}")
            raise NetworkError(f"Could not reach backend for {endpoint}") from e

        logger.debug(f"API Response: {response.status_code} {method} {endpoint}")

        if response.status_code == 401 and token:
            logger.info("Backend rejected session token, clearing session")
            self.token_store.clear()

        return response

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Any = None, authenticated: bool = True) -> httpx.Response:
        return await self.request("POST", endpoint, json=data, authenticated=authenticated)

    async def put(self, endpoint: str, data: Any = None) -> httpx.Response:
        return await self.request("PUT", endpoint, json=data)

    async def delete(self, endpoint: str) -> httpx.Response:
        return await self.request("DELETE", endpoint)
