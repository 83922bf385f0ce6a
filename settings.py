"""
Runtime configuration

Everything is read from the environment (a local .env file is honoured).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Storage
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "blisk")
KV_COLLECTION = os.getenv("KV_COLLECTION", "kv_store")

# Admin auth
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 8))
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")
ALLOW_PASSWORD_RESET = _flag("ALLOW_PASSWORD_RESET", True)
MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3

# HTTP
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Client side
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
ANON_KEY = os.getenv("ANON_KEY", "")
HEALTH_CHECK_TIMEOUT = 10
