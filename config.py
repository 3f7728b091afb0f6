# config.py
"""
Environment configuration for the ShiftStream backend.

All settings are read once from the environment (optionally a .env file)
and exposed as module-level constants.
"""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
     return os.getenv(name, default).lower() in ("1", "true", "yes")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
PORT = int(os.getenv("PORT", "10000"))
CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]
APP_BASE_URL = os.getenv("APP_BASE_URL", "https://shiftstream.vercel.app")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./shiftstream.db")
SQL_ECHO = _env_bool("SQL_ECHO", "false")

# SideShift (swap provider)
SIDESHIFT_API_BASE = os.getenv("SIDESHIFT_API_BASE", "https://sideshift.ai/api/v2")
SIDESHIFT_SECRET_KEY = os.getenv("SIDESHIFT_SECRET_KEY", "")
SIDESHIFT_AFFILIATE_ID = os.getenv("SIDESHIFT_AFFILIATE_ID", "")
SIDESHIFT_WEBHOOK_SECRET = os.getenv("SIDESHIFT_WEBHOOK_SECRET", "")
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

# Settlement asset (fixed for every link)
SETTLE_COIN = os.getenv("SETTLE_COIN", "USDC")
SETTLE_NETWORK = os.getenv("SETTLE_NETWORK", "base")

# Settlement wallet
WALLET_MODE = os.getenv("WALLET_MODE", "simulated")  # simulated | remote
WALLET_API_URL = os.getenv("WALLET_API_URL", "")
WALLET_API_KEY = os.getenv("WALLET_API_KEY", "")
WALLET_TIMEOUT_SECONDS = float(os.getenv("WALLET_TIMEOUT_SECONDS", "30"))

# Reconciliation
POLLING_ENABLED = _env_bool("POLLING_ENABLED", "true")
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "10"))
STALE_RELEASE_SECONDS = int(os.getenv("STALE_RELEASE_SECONDS", "300"))
RELEASE_ALERT_THRESHOLD = int(os.getenv("RELEASE_ALERT_THRESHOLD", "3"))

# Notifications
BREVO_API_KEY = os.getenv("BREVO_API_KEY")
NOTIFY_SENDER_EMAIL = os.getenv("NOTIFY_SENDER_EMAIL", "notifications@shiftstream.app")
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

# Fiat display rates
EXCHANGE_RATES_URL = os.getenv("EXCHANGE_RATES_URL", "https://api.exchangerate-api.com/v4/latest/USD")
EXCHANGE_RATES_TTL_SECONDS = float(os.getenv("EXCHANGE_RATES_TTL_SECONDS", "60"))
