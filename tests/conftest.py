"""Shared fixtures for the confetti-relay test suite."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.server import create_app
from core.config import Settings
from core.models import Order, OrderStatus, Shipping
from core.store import JsonOrderStore

RECEIVER = "0xReceiver"
TOKEN = "0xUSDC"


class RecordingNotifier:
    """Stands in for FulfillmentNotifier: records enqueued orders."""

    def __init__(self) -> None:
        self.orders: list[Order] = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def enqueue(self, order: Order) -> None:
        self.orders.append(order)


def make_shipping(**overrides) -> Shipping:
    fields = dict(
        name="Ada Lovelace",
        address1="12 Analytical Way",
        city="London",
        state="LDN",
        zip="N1 9GU",
        country="UK",
    )
    fields.update(overrides)
    return Shipping(**fields)


def make_order(order_id: str, created_at: str, price: float = 19.99, **overrides) -> Order:
    fields = dict(
        id=order_id,
        price=price,
        receiver=RECEIVER.lower(),
        shipping=make_shipping(),
        created_at=created_at,
        status=OrderStatus.AWAITING_PAYMENT,
    )
    fields.update(overrides)
    return Order(**fields)


def shipping_form(**overrides) -> dict:
    form = {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "address1": "12 Analytical Way",
        "address2": "Flat 3",
        "city": "London",
        "state": "LDN",
        "zip": "N1 9GU",
        "country": "UK",
        "confetti_note": "Extra gold please",
    }
    form.update(overrides)
    return form


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        receiver=RECEIVER,
        token_contract=TOKEN,
        price=19.99,
        orders_file=tmp_path / "orders.json",
        fulfillment_log=tmp_path / "fulfillment.jsonl",
        openclaw_bin="openclaw-test",
    )


@pytest.fixture()
def store(settings: Settings) -> JsonOrderStore:
    return JsonOrderStore(settings.orders_file)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(settings: Settings, store: JsonOrderStore, notifier: RecordingNotifier):
    app = create_app(settings, store, notifier)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def order_factory():
    return make_order


@pytest.fixture()
def form_factory():
    return shipping_form
