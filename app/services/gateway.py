"""
Razorpay integration: order (payment intent) creation and signature checks.

Checkout signature: HMAC-SHA256(key_secret, "<razorpay_order_id>|<razorpay_payment_id>") hex.
Webhook signature: HMAC-SHA256(webhook_secret, raw request body) hex, sent as X-Razorpay-Signature.
"""
import logging
from typing import Protocol

import razorpay

from app.core.config import settings
from app.core.security import constant_time_compare, hmac_sha256_hex
from app.services.errors import GatewayError

log = logging.getLogger("coursepay.gateway")


def checkout_signature(secret: str, razorpay_order_id: str, razorpay_payment_id: str) -> str:
    return hmac_sha256_hex(secret, f"{razorpay_order_id}|{razorpay_payment_id}")


class PaymentGateway(Protocol):
    key_id: str

    def create_intent(self, amount_minor_units: int, currency: str, receipt: str, notes: dict) -> dict:
        ...

    def verify_payment_signature(self, razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> bool:
        ...

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        ...


class RazorpayGateway:
    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
    ):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self._key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self._webhook_secret = webhook_secret if webhook_secret is not None else settings.razorpay_webhook_secret
        self._client: razorpay.Client | None = None

    def _get_client(self) -> razorpay.Client:
        if not self.key_id or not self._key_secret:
            raise GatewayError("Razorpay credentials are not configured")
        if self._client is None:
            self._client = razorpay.Client(auth=(self.key_id, self._key_secret))
        return self._client

    def create_intent(self, amount_minor_units: int, currency: str, receipt: str, notes: dict) -> dict:
        client = self._get_client()
        try:
            razorpay_order = client.order.create(
                {
                    "amount": amount_minor_units,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                    "payment_capture": 1,
                }
            )
        except Exception as e:
            log.error("Razorpay order create failed: receipt=%s error=%s", receipt, e)
            raise GatewayError("Error while creating Razorpay order!") from e
        if not razorpay_order or not razorpay_order.get("id"):
            raise GatewayError("Razorpay returned an order without id")
        return razorpay_order

    def verify_payment_signature(self, razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> bool:
        if not self._key_secret:
            return False
        expected = checkout_signature(self._key_secret, razorpay_order_id, razorpay_payment_id)
        return constant_time_compare(signature, expected)

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        if not self._webhook_secret:
            return False
        return constant_time_compare(signature, hmac_sha256_hex(self._webhook_secret, raw_body))

