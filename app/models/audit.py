from datetime import datetime

from sqlmodel import Field, SQLModel

from .base import utc_datetime, utcnow


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True)  # order_created, payment_verified, access_granted, access_grant_failed, manual_grant
    user_id: str | None = Field(default=None, index=True)
    order_id: str | None = Field(default=None, index=True)
    detail: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())
