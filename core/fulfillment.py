"""
Fulfillment Notifier

Once an order is PAID, the fulfillment agent gets a plain-text briefing:

    openclaw agent --message "<text>"

Design:
- Runs off the request path: settled orders go onto an asyncio.Queue,
  one worker task drains it, one agent process at a time
- Bounded by a timeout (60s default); the process is killed on expiry
- No retry. A failure is logged and journaled, the order stays PAID
- Journal: one JSON line per dispatch (ok or failed) so operators can
  find orders that were paid but never handed off
"""

import json
import time
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from core.config import CHAIN_LABEL, DEFAULT_AGENT_TIMEOUT_SECONDS, TOKEN_SYMBOL, Settings
from core.models import Order

logger = logging.getLogger("confetti.fulfillment")


class AgentError(Exception):
    """The agent could not be started, timed out, or exited non-zero."""
    pass


# ============================================================
# MESSAGE
# ============================================================

def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return repr(float(amount))


def format_fulfillment_message(
    order: Order,
    chain_label: str = CHAIN_LABEL,
    token_symbol: str = TOKEN_SYMBOL,
) -> str:
    ship = order.shipping
    payment = order.payment
    amount = payment.amount if payment else order.price
    tx_hash = payment.tx_hash if payment else ""
    street = ship.address1 + (f" {ship.address2}" if ship.address2 else "")

    return (
        f"CONFETTI ORDER PAID ✅\n"
        f"Order: {order.id}\n"
        f"Chain: {chain_label}\n"
        f"Amount: {format_amount(amount)} {token_symbol}\n"
        f"Tx: {tx_hash}\n\n"
        f"Ship To:\n"
        f"{ship.name}\n"
        f"{street}\n"
        f"{ship.city}, {ship.state} {ship.zip}\n"
        f"{ship.country}\n\n"
        f"Order notes: {order.note or '(none)'}\n\n"
        f"Please: (1) create packing slip/checklist (2) draft customer confirmation "
        f"message (3) mark Ready to Ship."
    )


# ============================================================
# AGENT PROCESS
# ============================================================

async def run_agent(binary: str, message: str,
                    timeout: float = DEFAULT_AGENT_TIMEOUT_SECONDS) -> str:
    """Run `<binary> agent --message <message>` and return its stdout."""
    try:
        proc = await asyncio.create_subprocess_exec(
            binary, "agent", "--message", message,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise AgentError(f"Cannot start {binary}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        raise AgentError(f"{binary} timed out after {timeout:g}s")

    stdout_text = stdout.decode("utf-8", errors="replace").strip()
    stderr_text = stderr.decode("utf-8", errors="replace").strip()
    if proc.returncode != 0:
        raise AgentError(stderr_text[:500] or f"{binary} exited with code {proc.returncode}")
    return stdout_text


AgentRunner = Callable[[str], Awaitable[str]]


# ============================================================
# NOTIFIER
# ============================================================

class FulfillmentNotifier:
    """
    Queue + single worker. Usage:
        notifier = FulfillmentNotifier(agent=lambda msg: run_agent("openclaw", msg))
        await notifier.start()
        notifier.enqueue(order)
        ...
        await notifier.stop()
    """

    def __init__(
        self,
        agent: AgentRunner,
        journal_path: Optional[Path] = None,
        chain_label: str = CHAIN_LABEL,
        token_symbol: str = TOKEN_SYMBOL,
    ):
        self._agent = agent
        self.journal_path = Path(journal_path) if journal_path else None
        self.chain_label = chain_label
        self.token_symbol = token_symbol
        self._queue: "asyncio.Queue[Order]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.dispatched: int = 0
        self.failed: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "FulfillmentNotifier":
        async def agent(message: str) -> str:
            return await run_agent(settings.openclaw_bin, message, settings.agent_timeout_seconds)
        return cls(
            agent=agent,
            journal_path=settings.fulfillment_log,
            chain_label=settings.chain_label,
            token_symbol=settings.token_symbol,
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="fulfillment-worker")
            logger.info("Fulfillment worker started")

    async def stop(self):
        """Cancel the worker. Orders still queued are logged, not dispatched."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if self._queue.qsize():
            logger.warning(f"Fulfillment worker stopped with {self._queue.qsize()} orders undispatched")

    def enqueue(self, order: Order):
        self._queue.put_nowait(order)
        logger.debug(f"Fulfillment queued: {order.id} (queue={self._queue.qsize()})")

    async def join(self):
        """Wait until every queued order has been dispatched (or failed)."""
        await self._queue.join()

    async def dispatch(self, order: Order) -> bool:
        """Notify the agent about one order. Never raises AgentError."""
        message = format_fulfillment_message(order, self.chain_label, self.token_symbol)
        tx_hash = order.payment.tx_hash if order.payment else ""
        try:
            output = await self._agent(message)
        except AgentError as e:
            self.failed += 1
            logger.error(f"FULFILLMENT FAILED: {order.id} tx {tx_hash}: {e}")
            self._journal(order, "failed", error=str(e))
            return False

        self.dispatched += 1
        logger.info(f"PAID + agent triggered: {order.id} {tx_hash}")
        self._journal(order, "ok", output=output[:500])
        return True

    async def _run(self):
        while True:
            order = await self._queue.get()
            try:
                await self.dispatch(order)
            except Exception as e:
                self.failed += 1
                logger.error(f"Fulfillment worker error on {order.id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _journal(self, order: Order, outcome: str, **extra):
        if not self.journal_path:
            return
        entry = {
            "t": time.time(),
            "order_id": order.id,
            "tx_hash": order.payment.tx_hash if order.payment else "",
            "outcome": outcome,
            **extra,
        }
        try:
            self.journal_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.journal_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write fulfillment journal: {e}")
