"""Checkout error taxonomy. Each error carries the HTTP status the API answers with."""


class CheckoutError(Exception):
    status_code = 500

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.order_id = order_id


class ValidationError(CheckoutError):
    """Missing or malformed request fields."""

    status_code = 400


class GatewayError(CheckoutError):
    """Razorpay refused or could not be reached while creating the order. Not retried."""

    status_code = 500


class PaymentVerificationError(CheckoutError):
    """Checkout or webhook signature did not match. The order is left untouched."""

    status_code = 400


class NotFoundError(CheckoutError):
    status_code = 404


class PartialFailureError(CheckoutError):
    """Order is durably paid but granting course access failed; needs reconciliation."""

    status_code = 500
