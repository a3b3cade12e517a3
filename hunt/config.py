import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DATABASE_URL = os.getenv("DATABASE_URL")

JWT_SECRET = os.getenv("JWT_SECRET")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")

REGISTRATION_FEE = int(os.getenv("REGISTRATION_FEE", "2000"))  # minor units
REGISTRATION_CURRENCY = os.getenv("REGISTRATION_CURRENCY", "inr")
REGISTRATION_COOKIE_MAX_AGE = int(os.getenv("REGISTRATION_COOKIE_MAX_AGE", str(60 * 60 * 24 * 7)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def webhook_secret():
    return os.getenv("STRIPE_WEBHOOK_SECRET")
