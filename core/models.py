"""
Order Data Model

Order: a shipping request waiting for, or settled by, a USDC transfer.
Payment: the transfer that settled it. Immutable once attached.

The on-disk JSON keeps camelCase keys (createdAt, txHash, ...) so that
orders.json files written by earlier deployments load unchanged.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger("confetti.models")


class OrderStatus(str, Enum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"


class InvalidTransition(Exception):
    """Raised when an order is asked to change status illegally."""
    pass


def utc_now_iso() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-01-02T03:04:05.678Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================================
# RECORDS
# ============================================================

@dataclass
class Shipping:
    name: str
    address1: str
    city: str
    state: str
    zip: str
    country: str
    email: Optional[str] = None
    address2: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Shipping":
        return cls(
            name=data.get("name", ""),
            email=data.get("email"),
            address1=data.get("address1", ""),
            address2=data.get("address2"),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip=data.get("zip", ""),
            country=data.get("country", ""),
        )


@dataclass(frozen=True)
class Payment:
    amount: float
    sender: str
    receiver: str
    token: str
    tx_hash: str
    received_at: str

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "from": self.sender,
            "to": self.receiver,
            "token": self.token,
            "txHash": self.tx_hash,
            "receivedAt": self.received_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        return cls(
            amount=float(data.get("amount", 0)),
            sender=data.get("from", ""),
            receiver=data.get("to", ""),
            token=data.get("token", ""),
            tx_hash=data.get("txHash", ""),
            received_at=data.get("receivedAt", ""),
        )


@dataclass
class Order:
    id: str
    price: float
    receiver: str
    shipping: Shipping
    note: str = ""
    status: OrderStatus = OrderStatus.AWAITING_PAYMENT
    created_at: str = field(default_factory=utc_now_iso)
    payment: Optional[Payment] = None

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.AWAITING_PAYMENT

    def mark_paid(self, payment: Payment):
        """AWAITING_PAYMENT -> PAID, exactly once. Attaches the payment."""
        if self.status != OrderStatus.AWAITING_PAYMENT:
            raise InvalidTransition(f"Order {self.id} is already {self.status.value}")
        self.status = OrderStatus.PAID
        self.payment = payment

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "createdAt": self.created_at,
            "price": self.price,
            "receiver": self.receiver,
            "shipping": self.shipping.to_dict(),
            "confetti_note": self.note,
            "payment": self.payment.to_dict() if self.payment else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        payment = data.get("payment")
        order = cls(
            id=data["id"],
            status=OrderStatus(data.get("status", OrderStatus.AWAITING_PAYMENT.value)),
            created_at=data.get("createdAt", ""),
            price=float(data.get("price", 0)),
            receiver=data.get("receiver", ""),
            shipping=Shipping.from_dict(data.get("shipping") or {}),
            note=data.get("confetti_note") or "",
            payment=Payment.from_dict(payment) if payment else None,
        )
        # PAID iff a payment is attached; a record that disagrees is loaded as-is
        if (order.status == OrderStatus.PAID) != (order.payment is not None):
            logger.warning(
                f"ORDER INCONSISTENT: {order.id} has status {order.status.value} "
                f"but {'a' if order.payment else 'no'} payment"
            )
        return order


@dataclass(frozen=True)
class Transfer:
    """A candidate token movement pulled out of a webhook payload."""
    to: str = ""
    sender: str = ""
    token: str = ""
    amount: float = float("nan")
    tx_hash: str = ""
