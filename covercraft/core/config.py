import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def get_env(name: str, fallback: str = "") -> str:
    """Read an environment variable, treating unset and empty values alike."""
    value = os.getenv(name)
    if value is None or value == "":
        return fallback
    return value


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


def get_site_url() -> Optional[str]:
    """Public site URL without a trailing slash (SITE_URL, then URL)."""
    site_url = get_env("SITE_URL") or get_env("URL")
    return site_url.rstrip("/") if site_url else None


# ✅ Database
DATABASE_URL = get_env("DATABASE_URL", "sqlite:///./covercraft.db")
RUN_MIGRATIONS = get_env("RUN_MIGRATIONS").lower() in ("1", "true")

# ✅ Supabase auth
SUPABASE_URL = get_env("SUPABASE_URL")
SUPABASE_ANON_KEY = get_env("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = get_env("SUPABASE_SERVICE_ROLE_KEY")

# ✅ Generation backend + direct provider
DEFAULT_BACKEND_URL = "https://cover-letter-api-production-fe17.up.railway.app"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

BACKEND_URL = get_env("BACKEND_URL", DEFAULT_BACKEND_URL)
OPENAI_API_KEY = get_env("OPENAI_API_KEY")
OPENAI_BASE_URL = get_env("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL)
OPENAI_MODEL = get_env("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
ALLOW_LOCAL_FALLBACK = env_flag("ALLOW_LOCAL_FALLBACK")
GENERATION_TIMEOUT_SECONDS = float(get_env("GENERATION_TIMEOUT_SECONDS", "60"))

# ✅ Stripe
STRIPE_SECRET_KEY = get_env("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = get_env("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ID = get_env("STRIPE_PRICE_ID")
STRIPE_PAYMENT_LINK = get_env("STRIPE_PAYMENT_LINK")

# ✅ Lemon Squeezy
LEMON_WEBHOOK_SECRET = get_env("LEMON_WEBHOOK_SECRET")
LEMON_PRODUCT_ID = get_env("LEMON_PRODUCT_ID")

# ✅ Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO")
LOG_DIR = get_env("LOG_DIR", "logs")
