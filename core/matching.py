"""
Payment Matcher - settles pending orders against reported transfers

A transfer carries no order id or memo, so matching is a policy:

Filters (first failure rejects the transfer, the next one is processed):
1. recipient, token and a finite amount must all be present
2. recipient == configured receiver (case-insensitive)
3. token == configured token contract (case-insensitive)
4. amount >= price, with a 1e-9 tolerance for float rounding

Selection: the most recently created AWAITING_PAYMENT order. Recency only;
a transfer that clears the price filter settles the newest pending order
even if several are pending with different prices.

Transfers are processed one at a time, so a single notification can settle
several orders and the pending set shrinks as it goes.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from core.config import Settings
from core.models import Order, Payment, Transfer, utc_now_iso
from core.store import OrderStore
from core.transfers import describe, extract_transfers

logger = logging.getLogger("confetti.matching")

PRICE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class MatchPolicy:
    receiver: str
    token_contract: str
    price: float
    tolerance: float = PRICE_TOLERANCE

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchPolicy":
        return cls(
            receiver=settings.receiver.lower(),
            token_contract=settings.token_contract.lower(),
            price=settings.price,
        )


def rejection_reason(transfer: Transfer, policy: MatchPolicy) -> Optional[str]:
    """Name of the first filter the transfer fails, or None if it qualifies."""
    if not transfer.to or not transfer.token or not math.isfinite(transfer.amount):
        return "incomplete"
    if transfer.to.lower() != policy.receiver.lower():
        return "receiver_mismatch"
    if transfer.token.lower() != policy.token_contract.lower():
        return "token_mismatch"
    if transfer.amount + policy.tolerance < policy.price:
        return "underpaid"
    return None


def select_pending_order(orders: Iterable[Order]) -> Optional[Order]:
    """Most recently created pending order; ties go to the earliest inserted."""
    selected = None
    for order in orders:
        if not order.is_pending:
            continue
        if selected is None or order.created_at > selected.created_at:
            selected = order
    return selected


def settle_transfers(
    transfers: Iterable[Transfer],
    orders: dict[str, Order],
    policy: MatchPolicy,
    now: Callable[[], str] = utc_now_iso,
) -> list[Order]:
    """
    Apply every qualifying transfer to the collection, in order.
    Mutates the matched orders in place and returns them.
    """
    settled: list[Order] = []
    for transfer in transfers:
        reason = rejection_reason(transfer, policy)
        if reason:
            logger.debug(f"Transfer skipped ({reason}): {describe(transfer)}")
            continue

        order = select_pending_order(orders.values())
        if order is None:
            logger.info(f"Qualifying transfer but no pending order: {describe(transfer)}")
            continue

        order.mark_paid(Payment(
            amount=transfer.amount,
            sender=transfer.sender,
            receiver=transfer.to,
            token=transfer.token,
            tx_hash=transfer.tx_hash,
            received_at=now(),
        ))
        settled.append(order)
        logger.info(f"ORDER PAID: {order.id} | {transfer.amount} | tx {transfer.tx_hash}")
    return settled


def process_notification(payload: Any, store: OrderStore, policy: MatchPolicy) -> list[Order]:
    """
    Extract, match and persist. The collection is written before this
    returns, so callers may notify downstream on the returned orders.
    """
    transfers = extract_transfers(payload)
    if not transfers:
        return []
    with store.transaction() as orders:
        settled = settle_transfers(transfers, orders, policy)
    logger.info(f"Webhook processed: {len(transfers)} transfers, {len(settled)} orders settled")
    return settled
