from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.security import constant_time_compare, decode_access_token
from app.services.gateway import PaymentGateway, RazorpayGateway
from app.services.orders import OrderService

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity handed over by the auth service inside the bearer token."""

    id: str
    name: str
    email: str
    role: str = "student"


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    user_id = (payload or {}).get("sub") or (payload or {}).get("_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return CurrentUser(
        id=str(user_id),
        name=payload.get("userName", ""),
        email=payload.get("userEmail", ""),
        role=payload.get("role", "student"),
    )


@lru_cache
def get_gateway() -> PaymentGateway:
    return RazorpayGateway()


def get_order_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
) -> OrderService:
    return OrderService(db, gateway)


def require_admin(x_admin_secret: str | None = Header(None, alias="X-Admin-Secret")) -> None:
    """Analytics and reconciliation: X-Admin-Secret header, constant-time compare."""
    expected = (settings.admin_secret or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="Admin access is not configured (ADMIN_SECRET missing)")
    if not constant_time_compare(x_admin_secret, expected):
        raise HTTPException(status_code=403, detail="Forbidden")
