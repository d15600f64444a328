import logging
from datetime import datetime, timezone
from typing import Optional
from jose import jwt, JWTError

logger = logging.getLogger(__name__)

# Tokens this close to expiry are treated as expired
EXPIRY_LEEWAY_SECONDS = 30


def get_token_claims(token: str) -> dict:
    """
    Read the claims of a session token without verifying the signature.

    The backend owns the signing key; the client only inspects claims to
    avoid sending tokens it already knows are stale.
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.debug(f"Session token is not a readable JWT: {e}")
        return {}


def get_token_subject(token: str) -> Optional[str]:
    """Return the 'sub' claim, if any."""
    sub = get_token_claims(token).get("sub")
    return str(sub) if sub is not None else None


def token_is_expired(token: Optional[str], now: Optional[datetime] = None) -> bool:
    """
    Check the 'exp' claim of a session token.

    Opaque tokens (not JWTs) and tokens without 'exp' are left for the
    backend to judge and reported as not expired.
    """
    if not token:
        return True
    exp = get_token_claims(token).get("exp")
    if exp is None:
        return False
    try:
        expires_at = datetime.fromtimestamp(float(exp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Session token carries an invalid exp claim")
        return False
    now = now or datetime.now(timezone.utc)
    return (expires_at - now).total_seconds() <= EXPIRY_LEEWAY_SECONDS
