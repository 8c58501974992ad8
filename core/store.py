"""
Order Store - flat-file persistence for the order collection

The whole collection (order id -> Order) is loaded fresh and rewritten
wholesale on every mutation. Writes are atomic (temp file + rename), so a
crash mid-write never leaves a truncated orders.json behind.

Known gap: load/mutate/save is not transactional across processes. Two
writers that load the same snapshot will overwrite each other (lost update).
Inside one event loop the cycle contains no await, so it cannot interleave.
A backend that closes the gap only has to override transaction().
"""

import os
import json
import logging
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from core.models import Order

logger = logging.getLogger("confetti.store")


class OrderStore(ABC):
    """Key-value persistence for orders."""

    @abstractmethod
    def load(self) -> dict[str, Order]:
        ...

    @abstractmethod
    def save(self, orders: dict[str, Order]):
        ...

    @contextmanager
    def transaction(self) -> Iterator[dict[str, Order]]:
        """
        Load, hand the collection to the caller, save on clean exit.
        Nothing is written if the body raises or leaves the collection
        unchanged.
        """
        orders = self.load()
        before = _snapshot(orders)
        yield orders
        if _snapshot(orders) != before:
            self.save(orders)

    def get(self, order_id: str) -> Optional[Order]:
        return self.load().get(order_id)


class JsonOrderStore(OrderStore):
    """orders.json: one pretty-printed JSON object keyed by order id."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> dict[str, Order]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {order_id: Order.from_dict(record) for order_id, record in data.items()}

    def save(self, orders: dict[str, Order]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {order_id: order.to_dict() for order_id, order in orders.items()}

        # ATOMIC WRITE: temp file in the same directory, then rename
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp", prefix="orders_"
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, str(self.path))
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(f"Saved {len(orders)} orders to {self.path}")


def _snapshot(orders: dict[str, Order]) -> dict[str, dict]:
    return {order_id: order.to_dict() for order_id, order in orders.items()}
