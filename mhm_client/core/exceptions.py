"""
Error taxonomy for the entitlement layer.

AuthError and programmer errors propagate to callers. NetworkError and
BillingSdkError describe degraded sources and are normally absorbed into the
resolved entitlement state.
"""
from typing import Optional


class MhmClientError(Exception):
    """Base class for client errors."""


class AuthError(MhmClientError):
    """Session token missing, expired, or rejected by the backend (401)."""


class NetworkError(MhmClientError):
    """Backend unreachable or answered with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BillingSdkError(MhmClientError):
    """Billing SDK not configured, or a purchase/restore call failed."""

    def __init__(self, message: str, user_cancelled: bool = False):
        super().__init__(message)
        self.user_cancelled = user_cancelled


class ValidationError(MhmClientError):
    """Backend rejected a form payload (login, register, password reset)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownResourceKind(ValueError):
    """Raised for a resource kind missing from the free-tier table."""
