"""Per-IP rate limiting for the checkout endpoints (SlowAPI); honours X-Forwarded-For."""
from fastapi import Request

from slowapi import Limiter

from .config import settings


def client_ip(request: Request) -> str:
    """Real client IP behind a proxy (first X-Forwarded-For hop)."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=client_ip)

CHECKOUT_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"
