import hashlib
import hmac
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from .config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 120


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def hmac_sha256_hex(secret: str, message: str | bytes) -> str:
    key = secret.encode("utf-8")
    body = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(key, body, hashlib.sha256).hexdigest()


def constant_time_compare(provided: str | None, expected: str | None) -> bool:
    """Timing-safe comparison; unequal lengths still go through compare_digest."""
    p = (provided or "").encode("utf-8")
    e = (expected or "").encode("utf-8")
    if len(p) != len(e):
        hmac.compare_digest(e, e)
        return False
    return hmac.compare_digest(p, e)
