"""Order reporting: refund eligibility, display dates and period analytics."""
from datetime import datetime, timedelta

from sqlmodel import Session, select

from app.core.config import settings
from app.models import Order, PaymentStatus
from app.models.base import as_utc, utcnow

DISPLAY_FORMAT = "%b %d, %Y • %I:%M %p"
DEADLINE_FORMAT = "%b %d, %Y"
PERIODS = ("today", "week", "month", "last7days", "last30days")


def format_date(value: datetime | None) -> str | None:
    return value.strftime(DISPLAY_FORMAT) if value else None


def formatted_dates(order: Order) -> dict:
    return {
        "orderDate": format_date(order.order_date),
        "paymentDate": format_date(order.payment_date),
        "createdAt": format_date(order.created_at),
        "updatedAt": format_date(order.updated_at),
    }


def refund_info(order: Order, now: datetime | None = None, window_days: int | None = None) -> dict:
    """Paid orders can be refunded for `refund_window_days` after payment."""
    if not order.payment_date or order.payment_status != PaymentStatus.PAID.value:
        return {"eligible": False, "reason": "Payment not completed"}
    now = as_utc(now or utcnow())
    window = settings.refund_window_days if window_days is None else window_days
    deadline = as_utc(order.payment_date) + timedelta(days=window)
    eligible = not now > deadline
    return {
        "eligible": eligible,
        "daysRemaining": (deadline - now).days if eligible else 0,
        "deadline": deadline.strftime(DEADLINE_FORMAT),
        "deadlinePassed": not eligible,
    }


def period_range(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """[start, end] for a reporting period; unknown periods fall back to today. Weeks start on Sunday."""
    now = as_utc(now or utcnow())
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_day = start_of_day + timedelta(days=1) - timedelta(microseconds=1)
    if period == "week":
        start = start_of_day - timedelta(days=(now.weekday() + 1) % 7)
        return start, start + timedelta(days=7) - timedelta(microseconds=1)
    if period == "month":
        start = start_of_day.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return start, next_month - timedelta(microseconds=1)
    if period == "last7days":
        return now - timedelta(days=7), now
    if period == "last30days":
        return now - timedelta(days=30), now
    return start_of_day, end_of_day


def order_analytics(db: Session, period: str = "today", now: datetime | None = None) -> dict:
    if period not in PERIODS:
        period = "today"
    start, end = period_range(period, now)
    stmt = select(Order).where(Order.created_at >= start, Order.created_at <= end).order_by(Order.created_at)
    orders = list(db.exec(stmt).all())

    paid = [o for o in orders if o.payment_status == PaymentStatus.PAID.value]
    pending = sum(1 for o in orders if o.payment_status == PaymentStatus.PENDING.value)
    failed = sum(1 for o in orders if o.payment_status == PaymentStatus.FAILED.value)
    return {
        "period": period,
        "dateRange": {"start": start.strftime("%Y-%m-%d"), "end": end.strftime("%Y-%m-%d")},
        "summary": {
            "totalOrders": len(orders),
            "successfulOrders": len(paid),
            "pendingOrders": pending,
            "failedOrders": failed,
            "totalRevenue": round(sum(o.course_pricing for o in paid), 2),
            "conversionRate": (len(paid) / len(orders)) * 100 if orders else 0,
        },
        "orders": orders,
    }
