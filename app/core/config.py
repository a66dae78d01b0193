from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./coursepay.db"
    # Comma separated origin list; "*" allows everything
    cors_origins: str = "*"
    # Per-IP request limit on the checkout endpoints
    rate_limit_per_minute: int = 60
    # Razorpay: order is created first, access is granted after signature verification
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""  # Dashboard > Webhooks secret, used for X-Razorpay-Signature
    razorpay_currency: str = "INR"
    admin_secret: str = ""             # Analytics and manual access re-grant
    refund_window_days: int = 30
    environment: str = "development"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("razorpay_key_id", "razorpay_key_secret", "razorpay_webhook_secret", mode="before")
    @classmethod
    def strip_razorpay_credentials(cls, v: str | None) -> str:
        """Trailing whitespace from copy/paste breaks the HMAC."""
        return (v or "").strip()

    @field_validator("razorpay_currency", mode="before")
    @classmethod
    def upper_currency(cls, v: str | None) -> str:
        return (v or "INR").strip().upper()


settings = Settings()


def is_razorpay_configured() -> bool:
    """Both halves of the Razorpay key pair are present."""
    return bool(settings.razorpay_key_id and settings.razorpay_key_secret)
