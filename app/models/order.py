"""Course purchase order: one row per Razorpay checkout attempt. Amounts are kept in paise."""
import uuid
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from .base import utc_datetime, utcnow


class OrderStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"


def new_order_id() -> str:
    return uuid.uuid4().hex


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: str = Field(default_factory=new_order_id, primary_key=True, max_length=32)
    user_id: str = Field(index=True)
    user_name: str
    user_email: str
    order_status: str = Field(default=OrderStatus.CREATED.value, index=True)
    order_date: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())
    payment_method: str = PaymentMethod.RAZORPAY.value
    payment_status: str = Field(default=PaymentStatus.PENDING.value, index=True)
    razorpay_order_id: str = Field(unique=True, index=True)
    razorpay_payment_id: str | None = Field(default=None, index=True)
    razorpay_signature: str | None = None
    payment_date: datetime | None = Field(default=None, sa_type=utc_datetime())
    receipt: str
    course_id: str = Field(index=True)
    course_title: str
    course_image: str
    course_pricing: float = Field(ge=0)
    instructor_id: str
    instructor_name: str
    currency: str = "INR"
    amount_in_paise: int
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime(), index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())

    @property
    def amount_in_rupees(self) -> float:
        return self.amount_in_paise / 100

    def is_payment_successful(self) -> bool:
        return (
            self.payment_status == PaymentStatus.PAID.value
            and self.order_status == OrderStatus.CONFIRMED.value
        )

    def mark_as_paid(self, payment_id: str, signature: str) -> None:
        """The only transition into `paid`; keeps paid => confirmed + payment id + signature."""
        now = utcnow()
        self.payment_status = PaymentStatus.PAID.value
        self.order_status = OrderStatus.CONFIRMED.value
        self.razorpay_payment_id = payment_id
        self.razorpay_signature = signature
        self.payment_date = now
        self.updated_at = now
