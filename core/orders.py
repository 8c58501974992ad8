"""
Order Factory - shipping input -> persisted AWAITING_PAYMENT order
"""

import uuid
import logging
from typing import Any, Mapping

from core.config import Settings
from core.models import Order, OrderStatus, Shipping
from core.store import OrderStore

logger = logging.getLogger("confetti.orders")

REQUIRED_SHIPPING_FIELDS = ("name", "address1", "city", "state", "zip", "country")
ORDER_ID_LENGTH = 10


class ShippingValidationError(ValueError):
    """One or more required shipping fields are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required shipping fields: {', '.join(missing)}")


def _text(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    # JSON clients send zip codes and house numbers as numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return value.strip() if isinstance(value, str) else ""


def _optional_text(fields: Mapping[str, Any], name: str):
    return _text(fields, name) or None


def validate_shipping(fields: Mapping[str, Any]) -> Shipping:
    missing = [name for name in REQUIRED_SHIPPING_FIELDS if not _text(fields, name)]
    if missing:
        raise ShippingValidationError(missing)
    return Shipping(
        name=_text(fields, "name"),
        email=_optional_text(fields, "email"),
        address1=_text(fields, "address1"),
        address2=_optional_text(fields, "address2"),
        city=_text(fields, "city"),
        state=_text(fields, "state"),
        zip=_text(fields, "zip"),
        country=_text(fields, "country"),
    )


def new_order_id(existing: Mapping[str, Any]) -> str:
    while True:
        order_id = uuid.uuid4().hex[:ORDER_ID_LENGTH]
        if order_id not in existing:
            return order_id


def create_order(fields: Mapping[str, Any], store: OrderStore, settings: Settings) -> Order:
    """
    Validate shipping input and persist a new pending order.
    Raises ShippingValidationError before touching the store; storage
    errors propagate to the caller.
    """
    shipping = validate_shipping(fields)
    with store.transaction() as orders:
        order = Order(
            id=new_order_id(orders),
            status=OrderStatus.AWAITING_PAYMENT,
            price=settings.price,
            receiver=settings.receiver,
            shipping=shipping,
            note=_text(fields, "confetti_note"),
        )
        orders[order.id] = order

    logger.info(f"ORDER CREATED: {order.id} | {settings.price} {settings.token_symbol} | {shipping.country}")
    return order


def payment_instructions(order: Order, settings: Settings) -> dict:
    return {
        "ok": True,
        "orderId": order.id,
        "amountUSDC": order.price,
        "chain": settings.chain_label,
        "payTo": order.receiver,
        "instructions": (
            f"Send exactly the amount in {settings.token_symbol} on {settings.chain_label} "
            f"to the address above. Keep this Order ID for support."
        ),
    }
