"""
Relay Configuration

All runtime settings come from the environment (optionally via a .env file
loaded in main.py). Read once at startup into a frozen Settings object and
passed explicitly to every component; nothing reads os.environ afterwards.
"""

import os
import math
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Mapping, Optional

from web3 import Web3

logger = logging.getLogger("confetti.config")


class ConfigError(Exception):
    """Raised when a setting cannot be used at all."""
    pass


# ============================================================
# CHAIN DEFAULTS
# ============================================================

CHAIN_LABEL: Final[str] = "Base"
TOKEN_SYMBOL: Final[str] = "USDC"
BASE_USDC_ADDRESS: Final[str] = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

DEFAULT_PRICE: Final[float] = 19.99
DEFAULT_AGENT_TIMEOUT_SECONDS: Final[float] = 60.0


# ============================================================
# SETTINGS
# ============================================================

@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8787
    log_level: str = "INFO"
    openclaw_bin: str = "openclaw"
    agent_timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS
    receiver: str = ""
    token_contract: str = BASE_USDC_ADDRESS.lower()
    price: float = DEFAULT_PRICE
    orders_file: Path = Path("orders.json")
    fulfillment_log: Path = Path("data/fulfillment.jsonl")
    chain_label: str = CHAIN_LABEL
    token_symbol: str = TOKEN_SYMBOL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (defaults to os.environ)."""
        env = os.environ if environ is None else environ

        price = _parse_float(env.get("PRICE", ""), DEFAULT_PRICE, "PRICE")
        if price <= 0:
            raise ConfigError(f"PRICE must be positive, got {price}")

        timeout = _parse_float(
            env.get("AGENT_TIMEOUT_SECONDS", ""), DEFAULT_AGENT_TIMEOUT_SECONDS,
            "AGENT_TIMEOUT_SECONDS",
        )
        if timeout <= 0:
            raise ConfigError(f"AGENT_TIMEOUT_SECONDS must be positive, got {timeout}")

        try:
            port = int(env.get("PORT") or "8787")
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {env.get('PORT')!r}")

        return cls(
            host=env.get("HOST") or "0.0.0.0",
            port=port,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            openclaw_bin=env.get("OPENCLAW_BIN") or "openclaw",
            agent_timeout_seconds=timeout,
            receiver=(env.get("RECEIVER") or "").strip().lower(),
            token_contract=(env.get("USDC_CONTRACT_BASE") or BASE_USDC_ADDRESS).strip().lower(),
            price=price,
            orders_file=Path(env.get("ORDERS_FILE") or Path.cwd() / "orders.json"),
            fulfillment_log=Path(env.get("FULFILLMENT_LOG") or "data/fulfillment.jsonl"),
        )

    def check(self) -> list[str]:
        """
        Return human-readable problems with the payment settings.
        Problems are warnings: orders can still be created, but no
        webhook transfer will ever match them.
        """
        problems = []
        if not self.receiver:
            problems.append("RECEIVER is not set")
        elif not Web3.is_address(self.receiver):
            problems.append(f"RECEIVER is not a valid address: {self.receiver}")
        if not Web3.is_address(self.token_contract):
            problems.append(f"USDC_CONTRACT_BASE is not a valid address: {self.token_contract}")
        return problems

    def log_summary(self):
        for problem in self.check():
            logger.warning(f"CONFIG: {problem}, payments will not match")
        logger.info(
            f"Payment target: {self.price} {self.token_symbol} on {self.chain_label} "
            f"to {self.receiver or '(unset)'} (token {self.token_contract})"
        )


def _parse_float(raw: str, default: float, name: str) -> float:
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    # float() accepts "nan" and "inf"; neither can be compared against an amount
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number, got {raw!r}")
    return value
