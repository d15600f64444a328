import os

# ✅ Backend API
PRODUCTION_API_URL = "https://web-production-2e659.up.railway.app"
BACKEND_URL = os.getenv("MHM_BACKEND_URL", PRODUCTION_API_URL)
HTTP_TIMEOUT = float(os.getenv("MHM_HTTP_TIMEOUT", "15"))

# ✅ RevenueCat
REVENUECAT_API_URL = os.getenv("REVENUECAT_API_URL", "https://api.revenuecat.com")
REVENUECAT_API_KEY_APPLE = os.getenv("REVENUECAT_API_KEY_APPLE", "")
REVENUECAT_API_KEY_GOOGLE = os.getenv("REVENUECAT_API_KEY_GOOGLE", "")
PLATFORM = os.getenv("MHM_PLATFORM", "ios")

# Optional RevenueCat entitlement filter, e.g. "My Horse Manager Pro"; empty counts every entitlement
ENTITLEMENT_ID = os.getenv("MHM_ENTITLEMENT_ID", "")

# ✅ Subscription products (compared by exact equality)
PRODUCT_ID_MONTHLY = os.getenv("MHM_PRODUCT_ID_MONTHLY", "mhm_monthly")
PRODUCT_ID_ANNUAL = os.getenv("MHM_PRODUCT_ID_ANNUAL", "mhm_annual")

# ✅ Free tier overrides, JSON object e.g. {"horses": 2}
FREE_LIMITS_OVERRIDE = os.getenv("MHM_FREE_LIMITS")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("MHM_LOG_DIR", "logs")

DEFAULT_LANGUAGE = os.getenv("MHM_LANGUAGE", "es")


def get_revenuecat_api_key(platform: str = PLATFORM) -> str:
    """Pick the RevenueCat public key for the running platform."""
    if platform == "ios":
        return REVENUECAT_API_KEY_APPLE
    return REVENUECAT_API_KEY_GOOGLE
