import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV.lower() == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scholarships.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(365 * 24 * 60)))

# "header" reads `Authorization: Bearer`, "cookie" reads the httpOnly `token` cookie.
AUTH_TRANSPORT = os.getenv("AUTH_TRANSPORT", "header").strip().lower()
AUTH_TRANSPORTS = {"header", "cookie"}
AUTH_COOKIE_NAME = "token"

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")

SCHOLARSHIP_PAGE_SIZE = int(os.getenv("SCHOLARSHIP_PAGE_SIZE", "8"))
TOP_SCHOLARSHIP_LIMIT = int(os.getenv("TOP_SCHOLARSHIP_LIMIT", "8"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

def validate_runtime_config() -> None:
    if IS_PRODUCTION and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if AUTH_TRANSPORT not in AUTH_TRANSPORTS:
        raise RuntimeError(f"AUTH_TRANSPORT must be one of {sorted(AUTH_TRANSPORTS)}.")
