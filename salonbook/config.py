import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salonbook.db")

# Supabase Auth - owner access tokens are HS256 JWTs signed with the project secret
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

# Professional logins are issued by this API, not by Supabase
PROFESSIONAL_JWT_SECRET = os.getenv("PROFESSIONAL_JWT_SECRET")
if not PROFESSIONAL_JWT_SECRET:
    import warnings

    warnings.warn(
        "PROFESSIONAL_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    PROFESSIONAL_JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
PROFESSIONAL_TOKEN_TTL_MINUTES = int(os.getenv("PROFESSIONAL_TOKEN_TTL_MINUTES", "720"))

# Credential encryption (AES-256-GCM). 32 random bytes, base64 encoded.
# Generate with: python -c "import os, base64; print(base64.b64encode(os.urandom(32)).decode())"
ENCRYPTION_KEY_BASE64 = os.getenv("ENCRYPTION_KEY_BASE64")

# Public base URL of this API, used when registering WhatsApp webhooks
BASE_URL = os.getenv("BASE_URL", "http://localhost:4000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")

# WhatsApp HTTP API (WAHA compatible)
WAHA_API_BASE = os.getenv("WAHA_API_BASE", "http://localhost:3001")
WAHA_API_KEY = os.getenv("WAHA_API_KEY")
# Shared secret expected in X-Webhook-Token on inbound webhooks (optional)
WHATSAPP_WEBHOOK_TOKEN = os.getenv("WHATSAPP_WEBHOOK_TOKEN")

# UltraMsg (per-user instance + encrypted token)
ULTRAMSG_API_BASE = os.getenv("ULTRAMSG_API_BASE", "https://api.ultramsg.com")
WHATSAPP_TEST_TO = os.getenv("WHATSAPP_TEST_TO", "1234567890")

# LLM auto-responses
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

# Redis (rate limiting, WhatsApp session store)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# WhatsApp session bookkeeping: "memory" or "redis"
SESSION_STORE_BACKEND = os.getenv("SESSION_STORE_BACKEND", "memory").lower()

# Outbound HTTP / database retry policy
RETRY_ATTEMPTS = int(os.getenv("RETRY_ATTEMPTS", "3"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "0.5"))

# Booking calendar
OPENING_HOUR = int(os.getenv("OPENING_HOUR", "8"))
CLOSING_HOUR = int(os.getenv("CLOSING_HOUR", "18"))
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
DEFAULT_SERVICE_DURATION = int(os.getenv("DEFAULT_SERVICE_DURATION", "30"))

# HTTP hardening
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
