"""
Order service: Razorpay order creation and payment finalisation.

create_order: gateway order first, then the local Order row (created/pending).
verify_and_finalize: signature check, order lookup, mark paid exactly once, grant access.
The Order commit and the access grant are separate transactions; a failed grant after the
commit is reported as PartialFailureError and recorded for reconciliation.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlmodel import Session, select

from app.core.config import settings
from app.models import AuditLog, Order, OrderStatus, PaymentMethod, PaymentStatus, SecurityLog
from app.models.base import as_utc, utcnow
from app.models.order import new_order_id
from app.services.access import CourseAccessGranter, CourseMeta, GrantResult, StudentInfo
from app.services.errors import NotFoundError, PartialFailureError, PaymentVerificationError, ValidationError
from app.services.gateway import PaymentGateway

log = logging.getLogger("coursepay.orders")

WEBHOOK_PAYMENT_EVENTS = ("payment.captured", "order.paid")
RECEIPT_MAX_LENGTH = 40
# Fits a 64-bit integer column with room to spare
MAX_AMOUNT_MINOR_UNITS = 10**12


@dataclass(frozen=True)
class Buyer:
    user_id: str
    user_name: str
    user_email: str


@dataclass(frozen=True)
class CourseInfo:
    course_id: str
    title: str
    image: str
    instructor_id: str
    instructor_name: str


@dataclass(frozen=True)
class CreatedOrder:
    gateway_order_id: str
    amount_minor_units: int
    currency: str
    receipt: str
    local_order_id: str
    key: str


def to_minor_units(price) -> int:
    """Major units to paise, half-up: 49.99 -> 4999."""
    try:
        amount = Decimal(str(price))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("coursePricing must be a number") from e
    if not amount.is_finite():
        raise ValidationError("coursePricing must be a finite number")
    try:
        minor = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise ValidationError("coursePricing is out of range") from e
    if minor > MAX_AMOUNT_MINOR_UNITS:
        raise ValidationError("coursePricing is out of range")
    return minor


def receipt_for(local_order_id: str) -> str:
    """Razorpay receipt, at most 40 characters. Course and user ids travel in the order notes."""
    return f"rcpt_{local_order_id}"[:RECEIPT_MAX_LENGTH]


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if value is None or (isinstance(value, str) and not value.strip())]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class OrderService:
    def __init__(self, db: Session, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway
        self.granter = CourseAccessGranter(db)

    # ---- create ----

    def create_order(
        self,
        buyer: Buyer,
        course: CourseInfo,
        pricing: float,
        currency: str | None = None,
        payment_method: str | None = None,
        order_date: datetime | None = None,
    ) -> CreatedOrder:
        _require(
            userId=buyer.user_id,
            userName=buyer.user_name,
            userEmail=buyer.user_email,
            courseId=course.course_id,
            courseTitle=course.title,
            courseImage=course.image,
            instructorId=course.instructor_id,
            instructorName=course.instructor_name,
            coursePricing=pricing,
        )
        amount = to_minor_units(pricing)
        if amount < 0:
            raise ValidationError("coursePricing must not be negative")
        method = payment_method or PaymentMethod.RAZORPAY.value
        if method not in {m.value for m in PaymentMethod}:
            raise ValidationError(f"Unsupported paymentMethod: {method}")
        currency = (currency or settings.razorpay_currency).upper()
        local_order_id = new_order_id()
        receipt = receipt_for(local_order_id)

        razorpay_order = self.gateway.create_intent(
            amount,
            currency,
            receipt,
            {"courseId": course.course_id, "userId": buyer.user_id, "courseTitle": course.title},
        )

        order = Order(
            id=local_order_id,
            user_id=buyer.user_id,
            user_name=buyer.user_name.strip(),
            user_email=buyer.user_email.strip().lower(),
            order_status=OrderStatus.CREATED.value,
            payment_method=method,
            payment_status=PaymentStatus.PENDING.value,
            order_date=as_utc(order_date) or utcnow(),
            razorpay_order_id=razorpay_order["id"],
            receipt=receipt,
            course_id=course.course_id,
            course_title=course.title.strip(),
            course_image=course.image,
            course_pricing=float(pricing),
            instructor_id=course.instructor_id,
            instructor_name=course.instructor_name.strip(),
            currency=currency,
            amount_in_paise=amount,
        )
        self.db.add(order)
        self.db.add(AuditLog(event="order_created", user_id=order.user_id, order_id=order.id, detail=order.razorpay_order_id))
        self.db.commit()
        self.db.refresh(order)
        log.info("Order created: order_id=%s razorpay_order_id=%s amount=%s", order.id, order.razorpay_order_id, amount)

        return CreatedOrder(
            gateway_order_id=order.razorpay_order_id,
            amount_minor_units=amount,
            currency=currency,
            receipt=order.receipt,
            local_order_id=order.id,
            key=self.gateway.key_id,
        )

    # ---- read ----

    def get_order(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=order_id)
        return order

    def get_by_razorpay_order_id(self, razorpay_order_id: str) -> Order | None:
        return self.db.exec(select(Order).where(Order.razorpay_order_id == razorpay_order_id)).first()

    # ---- verify ----

    def verify_and_finalize(
        self,
        razorpay_payment_id: str,
        razorpay_order_id: str,
        signature: str,
        local_order_id: str,
    ) -> Order:
        _require(
            razorpay_payment_id=razorpay_payment_id,
            razorpay_order_id=razorpay_order_id,
            razorpay_signature=signature,
            orderId=local_order_id,
        )
        if not self.gateway.verify_payment_signature(razorpay_order_id, razorpay_payment_id, signature):
            self._security_event("payment_signature_mismatch", local_order_id, f"razorpay_order_id={razorpay_order_id}")
            raise PaymentVerificationError("Payment verification failed", order_id=local_order_id)

        order = self.get_order(local_order_id)
        if order.razorpay_order_id != razorpay_order_id:
            self._security_event(
                "payment_order_mismatch",
                order.id,
                f"signed={razorpay_order_id} stored={order.razorpay_order_id}",
                user_id=order.user_id,
            )
            raise PaymentVerificationError("Payment verification failed", order_id=order.id)

        return self._finalize(order, razorpay_payment_id, signature)

    def finalize_from_webhook(self, raw_body: bytes, signature: str) -> Order | None:
        """Razorpay webhook: finalize on payment.captured / order.paid. Returns the order when handled."""
        if not signature or not self.gateway.verify_webhook_signature(raw_body, signature):
            self._security_event("webhook_signature_mismatch", None, "bad X-Razorpay-Signature")
            raise PaymentVerificationError("Webhook signature verification failed")
        try:
            event = json.loads(raw_body or b"{}")
        except ValueError as e:
            raise ValidationError("Webhook body is not JSON") from e

        if event.get("event") not in WEBHOOK_PAYMENT_EVENTS:
            log.info("Webhook ignored: event=%s", event.get("event"))
            return None
        payload = event.get("payload") or {}
        payment = (payload.get("payment") or {}).get("entity") or {}
        razorpay_order_id = payment.get("order_id") or ((payload.get("order") or {}).get("entity") or {}).get("id")
        payment_id = payment.get("id")
        if not razorpay_order_id or not payment_id:
            log.warning("Webhook without order/payment id: event=%s", event.get("event"))
            return None

        order = self.get_by_razorpay_order_id(razorpay_order_id)
        if order is None:
            log.warning("Webhook for unknown order: razorpay_order_id=%s", razorpay_order_id)
            return None
        if not self._webhook_amount_matches(order, payment):
            return None
        return self._finalize(order, payment_id, signature)

    def _webhook_amount_matches(self, order: Order, payment: dict) -> bool:
        """Captured amount and currency must equal what the order was created for, when Razorpay sends them."""
        amount = payment.get("amount")
        currency = payment.get("currency")
        amount_ok = amount is None or str(amount) == str(order.amount_in_paise)
        currency_ok = not currency or str(currency).upper() == order.currency
        if amount_ok and currency_ok:
            return True
        self._security_event(
            "webhook_amount_mismatch",
            order.id,
            f"paid={amount} {currency} expected={order.amount_in_paise} {order.currency}",
            user_id=order.user_id,
        )
        return False

    def regrant(self, order_id: str) -> GrantResult:
        """Manual reconciliation for a paid order whose access grant failed."""
        order = self.get_order(order_id)
        if not order.is_payment_successful():
            raise ValidationError("Order is not paid", order_id=order.id)
        result = self._grant_or_report(order)
        self.db.add(AuditLog(event="manual_grant", user_id=order.user_id, order_id=order.id))
        self.db.commit()
        return result

    def _finalize(self, order: Order, payment_id: str, signature: str) -> Order:
        if order.payment_status == PaymentStatus.PAID.value:
            # Retry or webhook/client race: order stays as stored, access converges.
            log.info("Order already paid: order_id=%s", order.id)
            self._grant_or_report(order)
            return order

        order.mark_as_paid(payment_id, signature)
        self.db.add(order)
        self.db.add(AuditLog(event="payment_verified", user_id=order.user_id, order_id=order.id, detail=payment_id))
        self.db.commit()
        self.db.refresh(order)
        log.info("Payment verified: order_id=%s payment_id=%s", order.id, payment_id)

        self._grant_or_report(order)
        return order

    def _grant_or_report(self, order: Order) -> GrantResult:
        try:
            result = self._grant(order)
        except Exception as e:
            self.db.rollback()
            log.error(
                "Access grant failed after payment, manual reconciliation needed: order_id=%s user_id=%s course_id=%s error=%s",
                order.id,
                order.user_id,
                order.course_id,
                e,
            )
            self._audit_safely("access_grant_failed", order, str(e)[:500])
            raise PartialFailureError(
                "Payment received but course access could not be granted", order_id=order.id
            ) from e
        if result.entry_added or result.roster_added:
            self._audit_safely("access_granted", order, None)
        return result

    def _grant(self, order: Order) -> GrantResult:
        return self.granter.grant(
            order.user_id,
            order.course_id,
            CourseMeta(
                title=order.course_title,
                instructor_id=order.instructor_id,
                instructor_name=order.instructor_name,
                course_image=order.course_image,
                date_of_purchase=order.order_date,
            ),
            order.course_pricing,
            StudentInfo(name=order.user_name, email=order.user_email),
        )

    def _audit_safely(self, event: str, order: Order, detail: str | None) -> None:
        try:
            self.db.add(AuditLog(event=event, user_id=order.user_id, order_id=order.id, detail=detail))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.warning("AuditLog %s write failed: order_id=%s error=%s", event, order.id, e)

    def _security_event(self, event: str, order_id: str | None, detail: str, user_id: str | None = None) -> None:
        log.warning("Security event %s: order_id=%s %s", event, order_id, detail)
        try:
            self.db.add(SecurityLog(event=event, order_id=order_id, user_id=user_id, detail=detail[:500]))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.warning("SecurityLog %s write failed: %s", event, e)
