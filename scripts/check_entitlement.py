"""
Script to print the resolved plan of a user.
Run: python -m scripts.check_entitlement <session_token> [user_id]

The token may also come from MHM_SESSION_TOKEN. Without a user id the JWT
'sub' claim is used as billing app user id.
"""
import asyncio
import logging
import os
import sys

from mhm_client.api.client import ApiClient, InMemoryTokenStore
from mhm_client.api.flags import BackendFlagFetcher
from mhm_client.billing.entitlement_source import EntitlementSource
from mhm_client.billing.revenuecat_provider import RevenueCatProvider
from mhm_client.core.config import DEFAULT_LANGUAGE, LOG_LEVEL
from mhm_client.core.exceptions import AuthError
from mhm_client.core.logging_config import setup_logging
from mhm_client.core.security import get_token_subject
from mhm_client.schemas.auth import User
from mhm_client.services.entitlement_store import SubscriptionStore
from mhm_client.services.plan_summary import summary_for_store

logger = logging.getLogger(__name__)


async def check_entitlement(token: str, user_id: str = None) -> bool:
    """Resolve and print the plan for a session token."""
    user_id = user_id or get_token_subject(token)
    user = User(id=user_id, email="") if user_id else None

    client = ApiClient(token_store=InMemoryTokenStore(token=token))
    provider = RevenueCatProvider()
    store = SubscriptionStore(EntitlementSource(provider), BackendFlagFetcher(client))
    try:
        await store.initialize(user)
        summary = summary_for_store(store, language=DEFAULT_LANGUAGE)
    except AuthError as e:
        logger.error(f"Session rejected: {e}")
        return False
    finally:
        store.close()
        await provider.aclose()
        await client.aclose()

    print(summary.model_dump_json(indent=2))
    return True


if __name__ == "__main__":
    setup_logging(LOG_LEVEL, log_dir=None)

    args = sys.argv[1:]
    token = args[0] if args else os.getenv("MHM_SESSION_TOKEN")
    user_id = args[1] if len(args) > 1 else None

    if not token:
        print("\n[ERROR] Pass a session token or set MHM_SESSION_TOKEN")
        sys.exit(2)

    if not asyncio.run(check_entitlement(token, user_id)):
        print("\n[ERROR] Session token rejected by the backend")
        sys.exit(1)
