"""
Transfer Extractor

Turns an inbound address-activity notification (schema not guaranteed)
into normalized Transfer records.

Payload shapes seen in the wild:
    {"event": {"activity": [...]}}     Alchemy ADDRESS_ACTIVITY
    {"data":  {"activity": [...]}}
    {"activity": [...]}

Each logical field has an ordered tuple of resolvers. A resolver is a pure
function from the raw activity dict to an optional value; the first usable
result wins. Nothing here raises on malformed input: absence degrades to
empty strings, NaN amounts, or an empty list.
"""

import math
import logging
from typing import Any, Callable

from core.models import Transfer

logger = logging.getLogger("confetti.transfers")

Resolver = Callable[[dict], Any]

ACTIVITY_PATHS: tuple[tuple[str, ...], ...] = (
    ("event", "activity"),
    ("data", "activity"),
    ("activity",),
)


# ============================================================
# RESOLVERS
# ============================================================

def _key(name: str) -> Resolver:
    return lambda raw: raw.get(name)


def _nested(outer: str, inner: str) -> Resolver:
    def resolve(raw: dict):
        container = raw.get(outer)
        return container.get(inner) if isinstance(container, dict) else None
    return resolve


RECIPIENT_RESOLVERS: tuple[Resolver, ...] = (_key("to"), _key("toAddress"), _key("receiver"))
SENDER_RESOLVERS: tuple[Resolver, ...] = (_key("from"), _key("fromAddress"), _key("sender"))
TOKEN_RESOLVERS: tuple[Resolver, ...] = (
    _nested("rawContract", "address"),
    _key("contractAddress"),
    _key("assetContractAddress"),
)
TX_HASH_RESOLVERS: tuple[Resolver, ...] = (_key("hash"), _key("transactionHash"), _key("txHash"))
AMOUNT_RESOLVERS: tuple[Resolver, ...] = (_key("value"), _key("amount"))


def first_truthy(raw: dict, resolvers: tuple[Resolver, ...]) -> Any:
    for resolve in resolvers:
        value = resolve(raw)
        if value:
            return value
    return None


def first_present(raw: dict, resolvers: tuple[Resolver, ...]) -> Any:
    """Like first_truthy, but 0 and "" count as present (only None is skipped)."""
    for resolve in resolvers:
        value = resolve(raw)
        if value is not None:
            return value
    return None


# ============================================================
# NORMALIZATION
# ============================================================

def as_number(value: Any) -> float:
    """Numbers pass through, numeric strings are parsed, anything else is NaN."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def as_address(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def normalize_transfer(raw: Any) -> Transfer:
    if not isinstance(raw, dict):
        return Transfer()
    tx_hash = first_truthy(raw, TX_HASH_RESOLVERS)
    return Transfer(
        to=as_address(first_truthy(raw, RECIPIENT_RESOLVERS)),
        sender=as_address(first_truthy(raw, SENDER_RESOLVERS)),
        token=as_address(first_truthy(raw, TOKEN_RESOLVERS)),
        amount=as_number(first_present(raw, AMOUNT_RESOLVERS)),
        tx_hash=tx_hash if isinstance(tx_hash, str) else "",
    )


# ============================================================
# EXTRACTION
# ============================================================

def extract_activity(payload: Any) -> list:
    """Raw activity records from the first known path holding a non-empty list."""
    for path in ACTIVITY_PATHS:
        node: Any = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, list) and node:
            return node
    return []


def extract_transfers(payload: Any) -> list[Transfer]:
    activity = extract_activity(payload)
    if not activity:
        logger.info("Webhook payload carries no activity records")
    return [normalize_transfer(raw) for raw in activity]


def describe(transfer: Transfer) -> str:
    """Short form for log lines."""
    amount = "NaN" if math.isnan(transfer.amount) else f"{transfer.amount}"
    return f"{transfer.tx_hash or '(no tx)'} {amount} -> {transfer.to or '(no recipient)'}"
