"""
confetti-relay - main entry point

Loads configuration, wires the order store, the fulfillment notifier and
the API server together, starts uvicorn.

Usage:
    python main.py                       # Start the relay
    uvicorn main:app --port 8787         # Or via uvicorn directly
"""

import os
import logging

import uvicorn
from dotenv import load_dotenv

# ============================================================
# BOOTSTRAP
# ============================================================

load_dotenv()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("confetti.main")


# ============================================================
# MODULE IMPORTS
# ============================================================

from core.config import Settings
from core.fulfillment import FulfillmentNotifier
from core.store import JsonOrderStore
from api.server import create_app


def create_relay_app(settings: Settings = None):
    """Build the FastAPI app from settings (environment by default)."""
    settings = settings or Settings.from_env()
    settings.log_summary()

    store = JsonOrderStore(settings.orders_file)
    notifier = FulfillmentNotifier.from_settings(settings)
    logger.info(f"Orders file: {store.path} | agent: {settings.openclaw_bin}")
    return create_app(settings, store, notifier)


# ============================================================
# ENTRY POINT
# ============================================================

settings = Settings.from_env()
app = create_relay_app(settings)

if __name__ == "__main__":
    logger.info(f"Server listening on http://{settings.host}:{settings.port}")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
