import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Scheduling rules
SLOT_HORIZON_DAYS = int(os.getenv("SLOT_HORIZON_DAYS", "14"))
SLOT_BREAK_MINUTES = int(os.getenv("SLOT_BREAK_MINUTES", "60"))
CANCELLATION_NOTICE_HOURS = float(os.getenv("CANCELLATION_NOTICE_HOURS", "4"))

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))
EMAIL_FROM = os.getenv("EMAIL_FROM", SMTP_USER or "no-reply@medibook.local")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "MediBook")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_HORIZON_DAYS < 1:
        raise RuntimeError("SLOT_HORIZON_DAYS must be at least 1.")
    if SLOT_BREAK_MINUTES < 0:
        raise RuntimeError("SLOT_BREAK_MINUTES cannot be negative.")
    if CANCELLATION_NOTICE_HOURS < 0:
        raise RuntimeError("CANCELLATION_NOTICE_HOURS cannot be negative.")
