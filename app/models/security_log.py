"""Security events written by the checkout flow and the rate limiter."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from .base import utc_datetime, utcnow


class SecurityLog(SQLModel, table=True):
    __tablename__ = "security_logs"
    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True)  # payment_signature_mismatch | payment_order_mismatch | webhook_signature_mismatch | webhook_amount_mismatch | rate_limit
    user_id: str | None = Field(default=None, index=True)
    order_id: str | None = Field(default=None, index=True)
    ip: str | None = None
    endpoint: str | None = None
    detail: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())
