# config.py
"""
Runtime configuration for the Wolf Gaming checkout backend.

Every value is read from the environment (a local .env file is loaded first),
so deployments only need to set variables, never edit code.
"""
import os
from decimal import Decimal
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Load .env
load_dotenv()


def _bool(name: str, default: str = "false") -> bool:
     return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Server
PORT = int(os.getenv("PORT", 3000))
BASE_URL = os.getenv("RENDER_EXTERNAL_URL") or os.getenv("BASE_URL", "http://localhost:3000")
CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "*").split(",") if o]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
STORE_NAME = os.getenv("STORE_NAME", "WOLF GAMING")

# Database
DB_SERVER = os.getenv("DB_SERVER")
DB_PORT = os.getenv("DB_PORT", "1433")
DB_USER = os.getenv("DB_USER")
DB_PASS = os.getenv("DB_PASS")
DB_NAME = os.getenv("DB_NAME")


def build_database_url() -> str:
     """
     Resolve the SQLAlchemy URL.

     DATABASE_URL wins; otherwise Azure SQL via pymssql when DB_SERVER is set,
     falling back to a local SQLite file.
     """
     explicit = os.getenv("DATABASE_URL")
     if explicit:
          return explicit
     if DB_SERVER:
          safe_user = quote_plus(DB_USER or "")
          safe_pass = quote_plus(DB_PASS or "")
          return f"mssql+pymssql://{safe_user}:{safe_pass}@{DB_SERVER}:{DB_PORT}/{DB_NAME}"
     return "sqlite:///./database.sqlite"


DATABASE_URL = build_database_url()

# NOWPayments
NOWPAYMENTS_API_KEY = os.getenv("NOWPAYMENTS_API_KEY")
NOWPAYMENTS_BASE_URL = os.getenv("NOWPAYMENTS_BASE_URL", "https://api.nowpayments.io/v1")
NOWPAYMENTS_PAY_CURRENCY = os.getenv("NOWPAYMENTS_PAY_CURRENCY", "usdttrc20")
NOWPAYMENTS_IPN_SECRET = os.getenv("NOWPAYMENTS_IPN_SECRET")
INVOICE_TIMEOUT_SECONDS = float(os.getenv("INVOICE_TIMEOUT_SECONDS", 10))

# Exchange rate (USD -> ILS)
EXCHANGE_RATE_URL = os.getenv("EXCHANGE_RATE_URL", "https://api.exchangerate-api.com/v4/latest/USD")
FALLBACK_USD_ILS_RATE = Decimal(os.getenv("FALLBACK_USD_ILS_RATE", "3.70"))
RATE_REFRESH_SECONDS = float(os.getenv("RATE_REFRESH_SECONDS", 3600))
RATE_TIMEOUT_SECONDS = float(os.getenv("RATE_TIMEOUT_SECONDS", 5))

# Checkout minimums
MIN_ORDER_ILS = Decimal(os.getenv("MIN_ORDER_ILS", "100"))
MIN_ORDER_USD = Decimal(os.getenv("MIN_ORDER_USD", "31"))

# Fulfillment
AUTO_COMPLETE_MIN_SECONDS = float(os.getenv("AUTO_COMPLETE_MIN_SECONDS", 240))
AUTO_COMPLETE_MAX_SECONDS = float(os.getenv("AUTO_COMPLETE_MAX_SECONDS", 480))
AUTO_COMPLETE_RETRY_SECONDS = float(os.getenv("AUTO_COMPLETE_RETRY_SECONDS", 300))
AUTO_COMPLETE_MAX_ATTEMPTS = int(os.getenv("AUTO_COMPLETE_MAX_ATTEMPTS", 3))
REQUIRE_PAYMENT_CONFIRMATION = _bool("REQUIRE_PAYMENT_CONFIRMATION")

# Notifications
BREVO_API_KEY = os.getenv("BREVO_API_KEY")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", STORE_NAME)
EMAIL_SENDER_ADDRESS = os.getenv("EMAIL_SENDER_ADDRESS", "noreply@wolfgaming.shop")
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_IDS = [
     c for c in (os.getenv("TELEGRAM_CHAT_ID_1"), os.getenv("TELEGRAM_CHAT_ID_2")) if c
]
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", 10))

# Admin
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 720))

# Proof images
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads"))
AZURE_STORAGE_ACCOUNT = os.getenv("AZURE_STORAGE_ACCOUNT")
AZURE_STORAGE_KEY = os.getenv("AZURE_STORAGE_KEY")
AZURE_PROOF_CONTAINER = os.getenv("AZURE_PROOF_CONTAINER", "proofs")
