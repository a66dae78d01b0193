from .order import (
    CreateOrderData,
    CreateOrderRequest,
    GrantResultRead,
    OrderRead,
    VerifyPaymentRequest,
)

__all__ = [
    "CreateOrderData",
    "CreateOrderRequest",
    "GrantResultRead",
    "OrderRead",
    "VerifyPaymentRequest",
]
