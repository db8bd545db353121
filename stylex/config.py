import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./stylex.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Public frontend URL used to build provider return/cancel links
FRONTEND_PUBLIC_URL = os.getenv("FRONTEND_PUBLIC_URL") or os.getenv("APP_PUBLIC_URL") or ""

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

# Billing: tier prices are expressed in this currency
BILLING_BASE_CURRENCY = os.getenv("BILLING_BASE_CURRENCY", "DOP").strip().upper()

# PayPal Configuration
PAYPAL_CLIENT_ID = os.getenv("PAYPAL_CLIENT_ID")
PAYPAL_CLIENT_SECRET = os.getenv("PAYPAL_CLIENT_SECRET")
# "sandbox" or "live" - default to sandbox for safety
PAYPAL_MODE = os.getenv("PAYPAL_MODE", "sandbox")
# Settlement currency for one-off orders
PAYPAL_CURRENCY = os.getenv("PAYPAL_CURRENCY", "USD").strip().upper()
# Base-currency units per one settlement unit (e.g. 60 DOP = 1 USD)
PAYPAL_EXCHANGE_RATE = os.getenv("PAYPAL_EXCHANGE_RATE")
PAYPAL_WEBHOOK_ID = os.getenv("PAYPAL_WEBHOOK_ID")
PAYPAL_BRAND_NAME = os.getenv("PAYPAL_BRAND_NAME", "Stylex")
PAYPAL_LOCALE = os.getenv("PAYPAL_LOCALE", "es-DO")
PAYPAL_TIMEOUT_SECONDS = float(os.getenv("PAYPAL_TIMEOUT_SECONDS", "30"))

# Recurring plan ids created in the PayPal dashboard, one per tier code
PAYPAL_PLAN_IDS = {
    "basic_1": os.getenv("PAYPAL_PLAN_ID_BASIC_1"),
    "basic_2": os.getenv("PAYPAL_PLAN_ID_BASIC_2"),
    "pro": os.getenv("PAYPAL_PLAN_ID_PRO"),
    "premium": os.getenv("PAYPAL_PLAN_ID_PREMIUM"),
}

# Bank transfer instructions shown to owners paying manually
TRANSFER_BANK_NAME = os.getenv("TRANSFER_BANK_NAME")
TRANSFER_ACCOUNT_HOLDER = os.getenv("TRANSFER_ACCOUNT_HOLDER")
TRANSFER_ACCOUNT_NUMBER = os.getenv("TRANSFER_ACCOUNT_NUMBER")
TRANSFER_ACCOUNT_TYPE = os.getenv("TRANSFER_ACCOUNT_TYPE")
TRANSFER_NOTES = os.getenv("TRANSFER_NOTES")
