import os
import re
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pedezap.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

APP_PUBLIC_URL = os.getenv("APP_PUBLIC_URL", os.getenv("NEXT_PUBLIC_APP_URL", "http://localhost:3000")).rstrip("/")
ONBOARDING_API_TOKEN = os.getenv("ONBOARDING_API_TOKEN", "").strip()
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "").strip()

# Documento único (restaurantes, planos, faturas, pedidos)
STORE_DOCUMENT_KEY = os.getenv("STORE_DOCUMENT_KEY", "app_store").strip() or "app_store"
STORE_WRITE_RETRIES = max(int(os.getenv("STORE_WRITE_RETRIES", "3")), 1)
STORE_SEED_PATH = os.getenv("STORE_SEED_PATH", "").strip()

# Assinaturas
TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "7"))
BILLING_CURRENCY = os.getenv("BILLING_CURRENCY", "brl").strip().lower() or "brl"

# Stripe (checkout de assinatura)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
STRIPE_CHECKOUT_HOST = os.getenv("STRIPE_CHECKOUT_HOST", "checkout.stripe.com").strip().lower()
STRIPE_WEBHOOK_TOLERANCE_SECONDS = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE_SECONDS", "300"))
STRIPE_WEBHOOK_VERIFY = _env_flag("STRIPE_WEBHOOK_VERIFY", "1")

# CORS
_cors_env = os.getenv("ORIGENS_CORS", os.getenv("CORS_ORIGINS", ""))
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

_cors_origin_regex_env = os.getenv("CORS_ALLOW_ORIGIN_REGEX", "").strip()
if _cors_origin_regex_env:
    CORS_ALLOW_ORIGIN_REGEX = _cors_origin_regex_env
else:
    _public_host = re.sub(r"^https?://", "", APP_PUBLIC_URL).split("/")[0].split(":")[0]
    CORS_ALLOW_ORIGIN_REGEX = None
    if not IS_DEV and _public_host:
        CORS_ALLOW_ORIGIN_REGEX = rf"^https://([a-z0-9-]+\.)?{re.escape(_public_host)}$"
