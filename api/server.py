"""
Confetti Relay API Server - FastAPI Backend

Endpoints:
- GET  /                  Order form (HTML)
- POST /order/form        Form submission -> HTML payment instructions
- POST /order/create      JSON order creation -> payment instructions
- GET  /order/{id}        Order record
- POST /webhooks/alchemy  Address-activity notification (always 200)
- GET  /webhooks/alchemy  Existence check for webhook registration
- GET  /health            Heartbeat

No auth. The webhook is acknowledged before any matching happens.
"""

import json
import logging
from contextlib import asynccontextmanager
from html import escape
from typing import Any, Optional

from fastapi import BackgroundTasks, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel, field_validator

from core.config import Settings
from core.fulfillment import FulfillmentNotifier
from core.matching import MatchPolicy, process_notification
from core.orders import ShippingValidationError, create_order, payment_instructions
from core.store import OrderStore

logger = logging.getLogger("confetti.api")

MISSING_FIELDS_MESSAGE = "Missing required shipping fields."


# ============================================================
# MODELS
# ============================================================

class CreateOrderRequest(BaseModel):
    # All optional: missing required fields are a 400, not a 422
    name: Optional[str] = None
    email: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    confetti_note: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def scalars_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class CreateOrderResponse(BaseModel):
    ok: bool
    orderId: str
    amountUSDC: float
    chain: str
    payTo: str
    instructions: str


# ============================================================
# HTML
# ============================================================

_INPUT_STYLE = "width:100%;padding:10px;margin:6px 0;"


def _page(body: str) -> str:
    return (
        "<html>\n"
        '  <body style="font-family: system-ui; max-width: 520px; margin: 40px auto;">\n'
        f"{body}\n"
        "  </body>\n"
        "</html>\n"
    )


def _input(name: str, placeholder: str, required: bool, value: str) -> str:
    attrs = f'name="{name}" placeholder="{escape(placeholder)}"'
    if value:
        attrs += f' value="{escape(value)}"'
    if required:
        attrs += " required"
    return f'      <input {attrs} style="{_INPUT_STYLE}" />'


def render_order_form(settings: Settings) -> str:
    fields = [
        ("name", "Full Name", True, ""),
        ("email", "Email (optional)", False, ""),
        ("address1", "Address Line 1", True, ""),
        ("address2", "Address Line 2", False, ""),
        ("city", "City", True, ""),
        ("state", "State", True, ""),
        ("zip", "ZIP", True, ""),
        ("country", "Country", True, "US"),
    ]
    inputs = "\n".join(_input(*f) for f in fields)
    return _page(
        "    <h1>Confetti Order</h1>\n"
        f"    <p>Fill shipping info, then you'll get payment instructions "
        f"({settings.price} {escape(settings.token_symbol)} on {escape(settings.chain_label)}).</p>\n"
        '    <form method="POST" action="/order/form">\n'
        f"{inputs}\n"
        '      <textarea name="confetti_note" placeholder="Confetti note (optional)" '
        f'style="{_INPUT_STYLE}height:90px;"></textarea>\n'
        '      <button type="submit" style="padding:12px 16px;margin-top:10px;">Create Order</button>\n'
        "    </form>"
    )


def render_confirmation(order_id: str, settings: Settings) -> str:
    return _page(
        "    <h2>Order Created ✅</h2>\n"
        f"    <p><b>Order ID:</b> {escape(order_id)}</p>\n"
        f"    <p>Send exactly <b>{settings.price} {escape(settings.token_symbol)}</b> "
        f"on <b>{escape(settings.chain_label)}</b> to:</p>\n"
        '    <code style="display:block;padding:12px;background:#f4f4f4;border-radius:8px;">'
        f"{escape(settings.receiver)}</code>\n"
        "    <p>Once payment confirms, your order will process automatically.</p>"
    )


# ============================================================
# SERVER FACTORY
# ============================================================

def create_app(
    settings: Settings,
    store: OrderStore,
    notifier: FulfillmentNotifier,
) -> FastAPI:
    """
    Create the FastAPI app wired to the order store and the notifier.

    notifier: anything with async start()/stop() and enqueue(order)
    """
    policy = MatchPolicy.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Confetti relay starting up")
        await notifier.start()
        try:
            yield
        finally:
            await notifier.stop()
            logger.info("Confetti relay shut down")

    app = FastAPI(
        title="confetti-relay",
        description="Shipping-form intake settled by USDC transfers on Base.",
        version="0.1.0",
        lifespan=lifespan,
    )

    async def _settle_and_notify(payload: Any):
        """Background half of the webhook. Runs after the 200 is sent."""
        try:
            settled = process_notification(payload, store, policy)
        except Exception as e:
            logger.error(f"Webhook processing error: {e}", exc_info=True)
            return
        for order in settled:
            notifier.enqueue(order)

    # ============================================================
    # ROUTES
    # ============================================================

    @app.get("/", response_class=HTMLResponse)
    async def order_form():
        return render_order_form(settings)

    @app.post("/order/form", response_class=HTMLResponse)
    async def submit_order_form(
        name: Optional[str] = Form(None),
        email: Optional[str] = Form(None),
        address1: Optional[str] = Form(None),
        address2: Optional[str] = Form(None),
        city: Optional[str] = Form(None),
        state: Optional[str] = Form(None),
        zip: Optional[str] = Form(None),
        country: Optional[str] = Form(None),
        confetti_note: Optional[str] = Form(None),
    ):
        fields = {
            "name": name, "email": email, "address1": address1, "address2": address2,
            "city": city, "state": state, "zip": zip, "country": country,
            "confetti_note": confetti_note,
        }
        try:
            order = create_order(fields, store, settings)
        except ShippingValidationError as e:
            logger.info(f"Order form rejected: missing {e.missing}")
            return PlainTextResponse(MISSING_FIELDS_MESSAGE, status_code=400)
        return render_confirmation(order.id, settings)

    @app.post("/order/create", response_model=CreateOrderResponse)
    async def create_order_json(req: CreateOrderRequest):
        try:
            order = create_order(req.model_dump(), store, settings)
        except ShippingValidationError as e:
            logger.info(f"Order create rejected: missing {e.missing}")
            return JSONResponse({"ok": False, "error": MISSING_FIELDS_MESSAGE}, status_code=400)
        return payment_instructions(order, settings)

    @app.get("/order/{order_id}")
    async def get_order(order_id: str):
        order = store.get(order_id)
        if order is None:
            raise HTTPException(404, "Order not found")
        return order.to_dict()

    @app.post("/webhooks/alchemy")
    async def alchemy_webhook(request: Request, background_tasks: BackgroundTasks):
        """Acknowledge immediately; matching and notification run afterwards."""
        body = await request.body()
        try:
            payload = json.loads(body) if body else None
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Webhook body is not JSON ({len(body)} bytes), ignoring")
            payload = None
        background_tasks.add_task(_settle_and_notify, payload)
        return {"ok": True}

    @app.get("/webhooks/alchemy", response_class=PlainTextResponse)
    async def alchemy_webhook_check():
        return "ok"

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app
