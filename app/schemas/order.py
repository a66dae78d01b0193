from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Client payloads use camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateOrderRequest(CamelModel):
    """Checkout for a single course. orderStatus/paymentStatus are accepted for client compatibility and ignored."""

    user_id: str = Field(min_length=1)
    user_name: str = Field(min_length=1)
    user_email: str = Field(min_length=3)
    course_id: str = Field(min_length=1)
    course_title: str = Field(min_length=1)
    course_image: str = Field(min_length=1)
    course_pricing: float = Field(ge=0, allow_inf_nan=False)
    instructor_id: str = Field(min_length=1)
    instructor_name: str = Field(min_length=1)
    payment_method: str | None = None
    order_status: str | None = None
    payment_status: str | None = None
    order_date: datetime | None = None

    @field_validator("user_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("userEmail must be an email address")
        return v


class CreateOrderData(CamelModel):
    gateway_order_id: str
    amount: int
    currency: str
    receipt: str
    order_id: str
    key: str


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout handler response plus our order id."""

    razorpay_payment_id: str = Field(min_length=1)
    razorpay_order_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    order_id: str = Field(min_length=1, alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class OrderRead(CamelModel):
    id: str
    user_id: str
    user_name: str
    user_email: str
    order_status: str
    order_date: datetime
    payment_method: str
    payment_status: str
    razorpay_order_id: str
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None
    payment_date: datetime | None = None
    receipt: str
    course_id: str
    course_title: str
    course_image: str
    course_pricing: float
    instructor_id: str
    instructor_name: str
    currency: str
    amount_in_paise: int
    amount_in_rupees: float
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class GrantResultRead(CamelModel):
    order_id: str
    entry_added: bool
    roster_added: bool
