import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL")

# Hosted identity platform (bearer tokens are validated against {AUTH_URL}/auth/v1/user)
AUTH_URL = os.getenv("AUTH_URL", "").rstrip("/")
AUTH_API_KEY = os.getenv("AUTH_API_KEY")
AUTH_TIMEOUT_SECONDS = float(os.getenv("AUTH_TIMEOUT_SECONDS", "10"))

# Shared secret for scheduled jobs (settlement cron)
CRON_SECRET = os.getenv("CRON_SECRET") or os.getenv("CRON_API_KEY")

# Business must have subscription_status == "active" to use booking endpoints
REQUIRE_ACTIVE_SUBSCRIPTION = os.getenv("REQUIRE_ACTIVE_SUBSCRIPTION", "true").lower() == "true"
ADMIN_EMAILS = [
    e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
]

# Calendar export
ICS_PRODID = os.getenv("ICS_PRODID", "-//RevGuard//Bookings//EN")
ICS_UID_DOMAIN = os.getenv("ICS_UID_DOMAIN", "revguard")

# Frontend base URL (CORS default)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",")
    if origin.strip()
]
