"""Orders API: create, verify, read, refund info, webhook, analytics, manual grant."""
import json

from fastapi.testclient import TestClient
from sqlmodel import select

import app.api.orders as orders_api
from app.core.config import settings
from app.core.security import hmac_sha256_hex
from app.models import CourseStudent, Order, StudentCourseEntry, StudentCourses
from app.services.access import CourseAccessGranter


def _create(client: TestClient, auth_headers, order_payload, **overrides) -> dict:
    r = client.post("/orders/create", json=order_payload(**overrides), headers=auth_headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def _verify_body(data: dict, sign, payment_id="pay_xyz", **overrides) -> dict:
    body = {
        "razorpay_payment_id": payment_id,
        "razorpay_order_id": data["gatewayOrderId"],
        "razorpay_signature": sign(data["gatewayOrderId"], payment_id),
        "orderId": data["orderId"],
    }
    body.update(overrides)
    return body


def test_create_order_returns_checkout_data(client, auth_headers, order_payload, gateway):
    r = client.post("/orders/create", json=order_payload(), headers=auth_headers)
    assert r.status_code == 201
    j = r.json()
    assert j["success"] is True
    data = j["data"]
    assert data["amount"] == 4999
    assert data["currency"] == "INR"
    assert data["key"] == settings.razorpay_key_id
    assert data["gatewayOrderId"] == gateway.created[0]["id"]
    assert data["receipt"] == f"rcpt_{data['orderId']}"
    assert len(data["receipt"]) <= 40
    assert data["orderId"]


def test_create_then_read_order(client, auth_headers, order_payload):
    data = _create(client, auth_headers, order_payload)
    r = client.get(f"/orders/order/{data['orderId']}", headers=auth_headers)
    assert r.status_code == 200
    order = r.json()["data"]
    assert order["id"] == data["orderId"]
    assert order["orderStatus"] == "created"
    assert order["paymentStatus"] == "pending"
    assert order["razorpayOrderId"] == data["gatewayOrderId"]
    assert order["userEmail"] == "asha@example.com"
    assert order["amountInPaise"] == 4999
    assert order["amountInRupees"] == 49.99
    assert order["razorpayPaymentId"] is None


def test_create_requires_auth(client, order_payload):
    r = client.post("/orders/create", json=order_payload())
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_create_rejects_invalid_token(client, order_payload):
    r = client.post("/orders/create", json=order_payload(), headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid or expired token"


def test_create_for_another_user_is_forbidden(client, auth_headers, order_payload, gateway):
    r = client.post("/orders/create", json=order_payload(userId="user_2"), headers=auth_headers)
    assert r.status_code == 403
    assert gateway.created == []


def test_create_missing_field_is_400(client, auth_headers, order_payload):
    body = order_payload()
    del body["courseId"]
    r = client.post("/orders/create", json=body, headers=auth_headers)
    assert r.status_code == 400
    j = r.json()
    assert j["success"] is False
    assert j["message"] == "Missing required field: courseId"


def test_create_negative_price_is_400(client, auth_headers, order_payload):
    r = client.post("/orders/create", json=order_payload(coursePricing=-1), headers=auth_headers)
    assert r.status_code == 400


def test_create_gateway_failure_is_500(client, auth_headers, order_payload, gateway, db):
    gateway.fail = True
    r = client.post("/orders/create", json=order_payload(), headers=auth_headers)
    assert r.status_code == 500
    j = r.json()
    assert j["success"] is False
    assert j["message"] == "Error while creating Razorpay order!"
    assert db.exec(select(Order)).all() == []


def test_verify_payment_confirms_order_and_grants_access(client, auth_headers, order_payload, sign, course, db):
    data = _create(client, auth_headers, order_payload)
    r = client.post("/orders/verify", json=_verify_body(data, sign), headers=auth_headers)
    assert r.status_code == 200, r.text
    j = r.json()
    assert j["success"] is True
    assert j["message"] == "Payment verified and order confirmed"
    assert j["data"]["paymentStatus"] == "paid"
    assert j["data"]["orderStatus"] == "confirmed"
    assert j["data"]["razorpayPaymentId"] == "pay_xyz"
    assert j["data"]["paymentDate"] is not None

    assert CourseAccessGranter(db).has_access("user_1", "course_1")
    roster = db.exec(select(CourseStudent)).all()
    assert [(s.student_id, s.student_name) for s in roster] == [("user_1", "Asha Rao")]


def test_verify_tampered_signature_is_400_and_order_unchanged(client, auth_headers, order_payload, sign, db):
    data = _create(client, auth_headers, order_payload)
    good = sign(data["gatewayOrderId"], "pay_xyz")
    tampered = ("a" if good[0] != "a" else "b") + good[1:]

    r = client.post("/orders/verify", json=_verify_body(data, sign, razorpay_signature=tampered), headers=auth_headers)

    assert r.status_code == 400
    assert r.json()["message"] == "Payment verification failed"
    order = client.get(f"/orders/order/{data['orderId']}", headers=auth_headers).json()["data"]
    assert order["paymentStatus"] == "pending"
    assert order["orderStatus"] == "created"
    assert order["razorpaySignature"] is None
    assert db.exec(select(StudentCourses)).all() == []


def test_verify_unknown_order_is_404(client, auth_headers, sign):
    body = {
        "razorpay_payment_id": "pay_1",
        "razorpay_order_id": "order_x",
        "razorpay_signature": sign("order_x", "pay_1"),
        "orderId": "does-not-exist",
    }
    r = client.post("/orders/verify", json=body, headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Order not found"


def test_verify_missing_field_is_400(client, auth_headers):
    r = client.post("/orders/verify", json={"razorpay_payment_id": "pay_1", "orderId": "x"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["message"].startswith("Missing required field")


def test_verify_twice_keeps_single_entry(client, auth_headers, order_payload, sign, course, db):
    data = _create(client, auth_headers, order_payload)
    first = client.post("/orders/verify", json=_verify_body(data, sign), headers=auth_headers)
    second = client.post("/orders/verify", json=_verify_body(data, sign), headers=auth_headers)

    assert first.status_code == second.status_code == 200
    assert first.json()["data"]["paymentDate"] == second.json()["data"]["paymentDate"]
    assert len(db.exec(select(StudentCourses)).all()) == 1
    assert len(db.exec(select(StudentCourseEntry)).all()) == 1
    assert len(db.exec(select(CourseStudent)).all()) == 1


def test_partial_failure_then_manual_grant(client, auth_headers, admin_headers, order_payload, sign, course, db, monkeypatch):
    data = _create(client, auth_headers, order_payload)

    def broken_grant(self, *args, **kwargs):
        raise RuntimeError("roster write failed")

    monkeypatch.setattr(CourseAccessGranter, "grant", broken_grant)
    r = client.post("/orders/verify", json=_verify_body(data, sign), headers=auth_headers)
    assert r.status_code == 500
    j = r.json()
    assert j["success"] is False
    assert j["data"] == {"orderId": data["orderId"]}

    order = client.get(f"/orders/order/{data['orderId']}", headers=auth_headers).json()["data"]
    assert order["paymentStatus"] == "paid"

    monkeypatch.undo()
    r = client.post(f"/orders/{data['orderId']}/grant", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"] == {"orderId": data["orderId"], "entryAdded": True, "rosterAdded": True}
    assert CourseAccessGranter(db).has_access("user_1", "course_1")


def test_manual_grant_requires_admin_secret(client, order_payload, auth_headers):
    data = _create(client, auth_headers, order_payload)
    r = client.post(f"/orders/{data['orderId']}/grant", headers={"X-Admin-Secret": "wrong"})
    assert r.status_code == 403
    r = client.post(f"/orders/{data['orderId']}/grant")
    assert r.status_code == 403


def test_manual_grant_for_unpaid_order_is_400(client, order_payload, auth_headers, admin_headers):
    data = _create(client, auth_headers, order_payload)
    r = client.post(f"/orders/{data['orderId']}/grant", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Order is not paid"


def test_other_users_order_is_hidden(client, auth_headers, order_payload, headers_for):
    data = _create(client, auth_headers, order_payload)
    r = client.get(f"/orders/order/{data['orderId']}", headers=headers_for("user_2"))
    assert r.status_code == 404
    r = client.get(f"/orders/order/{data['orderId']}", headers=headers_for("ops_1", role="admin"))
    assert r.status_code == 200


def test_read_unknown_order_is_404(client, auth_headers):
    r = client.get("/orders/order/nope", headers=auth_headers)
    assert r.status_code == 404
    j = r.json()
    assert j["success"] is False
    assert j["message"] == "Order not found"
    assert "data" not in j


def test_refund_info(client, auth_headers, order_payload, sign):
    data = _create(client, auth_headers, order_payload)
    r = client.get(f"/orders/{data['orderId']}/refund-info", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["refundInfo"] == {"eligible": False, "reason": "Payment not completed"}

    client.post("/orders/verify", json=_verify_body(data, sign), headers=auth_headers)
    r = client.get(f"/orders/{data['orderId']}/refund-info", headers=auth_headers)
    info = r.json()["data"]
    assert info["refundInfo"]["eligible"] is True
    assert info["refundInfo"]["daysRemaining"] in (29, 30)
    assert info["refundInfo"]["deadlinePassed"] is False
    assert " • " in info["formattedDates"]["paymentDate"]


def _webhook(razorpay_order_id: str, event: str = "payment.captured") -> tuple[bytes, dict]:
    body = json.dumps(
        {"event": event, "payload": {"payment": {"entity": {"id": "pay_wh1", "order_id": razorpay_order_id}}}}
    ).encode()
    headers = {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": hmac_sha256_hex(settings.razorpay_webhook_secret, body),
    }
    return body, headers


def test_webhook_finalizes_order(client, auth_headers, order_payload):
    data = _create(client, auth_headers, order_payload)
    body, headers = _webhook(data["gatewayOrderId"])

    r = client.post("/orders/webhook", content=body, headers=headers)

    assert r.status_code == 200
    assert r.json()["data"] == {"orderId": data["orderId"], "handled": True}
    order = client.get(f"/orders/order/{data['orderId']}", headers=auth_headers).json()["data"]
    assert order["paymentStatus"] == "paid"
    assert order["razorpayPaymentId"] == "pay_wh1"


def test_webhook_bad_signature_is_400(client, auth_headers, order_payload):
    data = _create(client, auth_headers, order_payload)
    body, headers = _webhook(data["gatewayOrderId"])
    headers["X-Razorpay-Signature"] = "0" * 64
    r = client.post("/orders/webhook", content=body, headers=headers)
    assert r.status_code == 400


def test_webhook_other_event_is_acknowledged(client):
    body, headers = _webhook("order_x", event="refund.created")
    r = client.post("/orders/webhook", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"] == {"orderId": None, "handled": False}


def test_analytics(client, auth_headers, admin_headers, order_payload, sign):
    paid = _create(client, auth_headers, order_payload)
    client.post("/orders/verify", json=_verify_body(paid, sign), headers=auth_headers)
    _create(client, auth_headers, order_payload, coursePricing=10)

    r = client.get("/orders/analytics", params={"period": "last7days"}, headers=admin_headers)

    assert r.status_code == 200
    report = r.json()["data"]
    assert report["period"] == "last7days"
    assert report["summary"]["totalOrders"] == 2
    assert report["summary"]["successfulOrders"] == 1
    assert report["summary"]["pendingOrders"] == 1
    assert report["summary"]["totalRevenue"] == 49.99
    assert report["summary"]["conversionRate"] == 50
    assert all(" • " in o["formattedDate"] for o in report["orders"])


def test_analytics_requires_admin(client, auth_headers):
    r = client.get("/orders/analytics", headers=auth_headers)
    assert r.status_code == 403


def test_create_with_huge_price_is_400(client, auth_headers, order_payload, gateway):
    r = client.post("/orders/create", json=order_payload(coursePricing=1e30), headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert gateway.created == []


def test_create_with_infinite_price_is_400(client, auth_headers, order_payload, gateway):
    # json.dumps writes float("inf") as the bare token Infinity
    body = json.dumps(order_payload(coursePricing=float("inf")))
    r = client.post("/orders/create", content=body, headers={**auth_headers, "Content-Type": "application/json"})
    assert r.status_code == 400
    assert gateway.created == []


def test_create_with_long_ids_keeps_receipt_short(client, headers_for, order_payload):
    user_id = "650b9c3f1a2d4e5f6a7b8c9d"
    r = client.post(
        "/orders/create",
        json=order_payload(userId=user_id, courseId="66f1c2a9e4b0a1b2c3d4e5f6"),
        headers=headers_for(user_id),
    )
    assert r.status_code == 201, r.text
    assert len(r.json()["data"]["receipt"]) <= 40


def test_webhook_runs_off_the_event_loop(client, auth_headers, order_payload, monkeypatch):
    data = _create(client, auth_headers, order_payload)
    calls = []
    real = orders_api.run_in_threadpool

    async def recording(func, *args, **kwargs):
        calls.append(func.__name__)
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(orders_api, "run_in_threadpool", recording)
    body, headers = _webhook(data["gatewayOrderId"])
    r = client.post("/orders/webhook", content=body, headers=headers)

    assert r.status_code == 200
    assert calls == ["finalize_from_webhook"]
