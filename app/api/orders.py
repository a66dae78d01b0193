"""Checkout API: Razorpay order creation, payment verification, order reads and reconciliation."""
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from app.api.deps import CurrentUser, get_current_user, get_order_service, require_admin
from app.core.database import get_db
from app.core.rate_limit import CHECKOUT_RATE_LIMIT, limiter
from app.models import Order
from app.schemas import CreateOrderData, CreateOrderRequest, GrantResultRead, OrderRead, VerifyPaymentRequest
from app.services.order_info import format_date, formatted_dates, order_analytics, refund_info
from app.services.orders import Buyer, CourseInfo, OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def order_json(order: Order) -> dict:
    return OrderRead.model_validate(order).model_dump(by_alias=True, mode="json")


def _get_visible_order(service: OrderService, order_id: str, user: CurrentUser) -> Order:
    order = service.get_order(order_id)
    if order.user_id != user.id and user.role != "admin":
        # Other users' orders are indistinguishable from missing ones.
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/create", status_code=201)
@limiter.limit(CHECKOUT_RATE_LIMIT)
def create_order(
    request: Request,
    body: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Open a Razorpay order; the client launches checkout with the returned gatewayOrderId and key."""
    if body.user_id != user.id:
        raise HTTPException(status_code=403, detail="Orders can only be placed for the signed-in user")
    created = service.create_order(
        Buyer(user_id=body.user_id, user_name=body.user_name, user_email=body.user_email),
        CourseInfo(
            course_id=body.course_id,
            title=body.course_title,
            image=body.course_image,
            instructor_id=body.instructor_id,
            instructor_name=body.instructor_name,
        ),
        body.course_pricing,
        payment_method=body.payment_method,
        order_date=body.order_date,
    )
    data = CreateOrderData(
        gateway_order_id=created.gateway_order_id,
        amount=created.amount_minor_units,
        currency=created.currency,
        receipt=created.receipt,
        order_id=created.local_order_id,
        key=created.key,
    )
    return {"success": True, "data": data.model_dump(by_alias=True)}


@router.post("/verify")
@limiter.limit(CHECKOUT_RATE_LIMIT)
def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.verify_and_finalize(
        body.razorpay_payment_id,
        body.razorpay_order_id,
        body.razorpay_signature,
        body.order_id,
    )
    return {"success": True, "message": "Payment verified and order confirmed", "data": order_json(order)}


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(None, alias="X-Razorpay-Signature"),
    service: OrderService = Depends(get_order_service),
):
    """Razorpay webhook: finalizes orders whose client never reached /verify."""
    raw_body = await request.body()
    # Session work is blocking; keep it off the event loop
    order = await run_in_threadpool(service.finalize_from_webhook, raw_body, x_razorpay_signature or "")
    return {"success": True, "data": {"orderId": order.id if order else None, "handled": order is not None}}


@router.get("/analytics")
def get_order_analytics(
    period: str = "today",
    _=Depends(require_admin),
    db: Session = Depends(get_db),
):
    report = order_analytics(db, period)
    report["orders"] = [
        {**order_json(o), "formattedDate": format_date(o.created_at)} for o in report["orders"]
    ]
    return {"success": True, "data": report}


@router.get("/order/{order_id}")
def get_order_details(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = _get_visible_order(service, order_id, user)
    return {"success": True, "data": order_json(order)}


@router.get("/{order_id}/refund-info")
def get_refund_info(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = _get_visible_order(service, order_id, user)
    return {"success": True, "data": {"refundInfo": refund_info(order), "formattedDates": formatted_dates(order)}}


@router.post("/{order_id}/grant")
def regrant_access(
    order_id: str,
    _=Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """Support: re-run course access for a paid order (partial failure reconciliation)."""
    result = service.regrant(order_id)
    data = GrantResultRead(order_id=order_id, entry_added=result.entry_added, roster_added=result.roster_added)
    return {"success": True, "data": data.model_dump(by_alias=True)}
