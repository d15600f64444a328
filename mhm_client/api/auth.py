"""
Session lifecycle against the backend auth endpoints.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from mhm_client.api.client import ApiClient
from mhm_client.core.exceptions import NetworkError, ValidationError
from mhm_client.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, User

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and isinstance(data.get("detail"), str):
        return data["detail"]
    return fallback


def _first_error(e: PydanticValidationError) -> str:
    errors = e.errors()
    if not errors:
        return "Invalid data"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", "invalid")


class AuthService:
    """Login, registration, and session restore for the client."""

    def __init__(self, client: ApiClient):
        self.client = client

    @property
    def current_user(self) -> Optional[User]:
        if not self.client.get_token():
            return None
        return self.client.token_store.get_user()

    async def _post_auth(self, endpoint: str, payload: Dict[str, Any], fallback: str) -> User:
        response = await self.client.post(endpoint, payload, authenticated=False)
        if response.status_code >= 400:
            raise ValidationError(_error_detail(response, fallback), status_code=response.status_code)

        try:
            auth = AuthResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise NetworkError(f"Malformed response from {endpoint}") from e

        self.client.token_store.save(auth.access_token, auth.user)
        logger.info(f"Session started for user_id={auth.user.id}")
        return auth.user

    async def login(self, email: str, password: str) -> User:
        """
        Log in and store the session.

        Raises:
            ValidationError: invalid payload or credentials rejected
            NetworkError: backend unreachable
        """
        try:
            request = LoginRequest(email=email, password=password)
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e)) from e
        return await self._post_auth("/api/auth/login", request.model_dump(), "Login failed")

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        language: str = "es",
        security_question: Optional[str] = None,
        security_answer: Optional[str] = None,
    ) -> User:
        """Create an account and store its session."""
        fields: Dict[str, Any] = {"email": email, "password": password, "name": name, "language": language}
        if security_question:
            fields["security_question"] = security_question
        if security_answer:
            fields["security_answer"] = security_answer
        try:
            request = RegisterRequest(**fields)
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e)) from e
        return await self._post_auth("/api/auth/register", request.model_dump(), "Registration failed")

    def logout(self) -> None:
        self.client.token_store.clear()
        logger.info("Session cleared")

    async def restore_session(self) -> Optional[User]:
        """
        Restore the stored session, verifying it against /api/auth/me.

        A rejected token logs the user out. An unreachable backend keeps the
        stored session so the app stays usable offline.
        """
        token = self.client.get_token()
        user = self.client.token_store.get_user()
        if not token or not user:
            return None

        try:
            response = await self.client.get("/api/auth/me")
        except NetworkError:
            logger.info("Could not verify session, keeping stored user for offline use")
            return user

        if response.status_code >= 400:
            logger.info(f"Stored session rejected ({response.status_code}), logging out")
            self.logout()
            return None
        return user

    async def forgot_password(self, email: str) -> Dict[str, Any]:
        """Start recovery; returns the security question for the account."""
        response = await self.client.post("/api/auth/forgot-password", {"email": email}, authenticated=False)
        if response.status_code >= 400:
            raise ValidationError(_error_detail(response, "Request failed"), status_code=response.status_code)
        return response.json()

    async def verify_security_answer(self, email: str, answer: str) -> bool:
        response = await self.client.post(
            "/api/auth/verify-security-answer",
            {"email": email, "security_answer": answer},
            authenticated=False,
        )
        if response.status_code >= 400:
            raise ValidationError(_error_detail(response, "Verification failed"), status_code=response.status_code)
        return bool(response.json().get("verified", False))

    async def reset_password_with_security(self, email: str, answer: str, new_password: str) -> None:
        response = await self.client.post(
            "/api/auth/reset-password-with-security",
            {"email": email, "security_answer": answer, "new_password": new_password},
            authenticated=False,
        )
        if response.status_code >= 400:
            raise ValidationError(_error_detail(response, "Reset failed"), status_code=response.status_code)

    def change_language(self, language: str) -> None:
        """Update the stored user's preferred language."""
        user = self.client.token_store.get_user()
        if user:
            self.client.token_store.update_user(user.model_copy(update={"language": language}))
