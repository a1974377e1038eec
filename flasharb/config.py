# flasharb/config.py
"""
Flash Arbitrage Configuration
WETH flash loan -> ParaSwap swap -> repay, on Arbitrum
"""

import os
from dotenv import load_dotenv
from pathlib import Path
from decimal import Decimal
from dataclasses import dataclass, field
from typing import Optional, Tuple

from flasharb.tokens import (
    WETH, DAI, AAVE_V3_POOL, PARASWAP_TRANSFER_PROXY,
)

# -----------------------------
# Load .env safely
# -----------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "config" / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
else:
    load_dotenv()

# -----------------------------
# Chain Configuration
# -----------------------------
CHAIN_ID = 42161  # Arbitrum One
CHAIN_NAME = "arbitrum"

RPC_URL = os.getenv("RPC_URL", "")

# -----------------------------
# Aggregator Configuration (ParaSwap v5)
# -----------------------------
PARASWAP_API_URL = os.getenv("PARASWAP_API_URL", "https://apiv5.paraswap.io")
PARASWAP_PARTNER = "arbitrage-bot"
HTTP_TIMEOUT_SECONDS = 10
MAX_PRICE_IMPACT_BPS = 50
SWAP_DEADLINE_SECONDS = 600

# -----------------------------
# Settlement Contract
# -----------------------------
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS", "0xE3F1231777f0cc3493468CEc0383ABb603162eb2")
LOAN_ASSET = WETH
SWAP_DEST_ASSET = DAI
SWAP_FRACTION_BPS = 5000  # swap 50% of the principal, the rest covers repayment

# -----------------------------
# Trading Parameters
# -----------------------------
MIN_PROFIT_THRESHOLD_USD = Decimal("3.80")
LOAN_AMOUNTS = ("1",)           # human units of LOAN_ASSET, one attempt per size
SLIPPAGE_PERCENT = Decimal("0.5")

# -----------------------------
# Gas / Confirmation
# -----------------------------
GAS_LIMIT_FLASH_LOAN = 5_000_000
GAS_LIMIT_APPROVAL = 60_000
RECEIPT_TIMEOUT_SECONDS = 180

# -----------------------------
# Loop Configuration
# -----------------------------
CHECK_INTERVAL_SECONDS = 5.0

# -----------------------------
# Paper settlement (simulate mode)
# -----------------------------
PAPER_POOL_LIQUIDITY = "1000"   # human units of LOAN_ASSET held by the simulated pool
PAPER_RESERVE = "0.6"           # human units pre-funded on the simulated contract

# -----------------------------
# Logging
# -----------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def require_env(name: str) -> str:
    """Read a mandatory secret, failing loudly when absent"""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} not set in .env")
    return value


def _split_csv(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not raw:
        return default
    parts = tuple(p.strip() for p in raw.split(",") if p.strip())
    return parts or default


# =============================================================================
# INJECTED CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class SettlementConfig:
    """Fixed addresses and policy of the settlement contract"""
    loan_asset: str = LOAN_ASSET
    lending_pool: str = AAVE_V3_POOL
    transfer_proxy: str = PARASWAP_TRANSFER_PROXY
    swap_dest_asset: str = SWAP_DEST_ASSET
    swap_fraction_bps: int = SWAP_FRACTION_BPS

    def __post_init__(self):
        if self.swap_dest_asset.lower() == self.loan_asset.lower():
            raise ValueError("Swap destination must differ from the loan asset")
        if not 0 < self.swap_fraction_bps <= 10000:
            raise ValueError(f"swap_fraction_bps out of range: {self.swap_fraction_bps}")


@dataclass(frozen=True)
class MonitorSettings:
    """Knobs of the off-chain monitoring loop"""
    loan_amounts: Tuple[str, ...] = LOAN_AMOUNTS
    min_profit_usd: Decimal = MIN_PROFIT_THRESHOLD_USD
    slippage_percent: Decimal = SLIPPAGE_PERCENT
    check_interval_seconds: float = CHECK_INTERVAL_SECONDS
    contract_address: str = CONTRACT_ADDRESS
    chain_id: int = CHAIN_ID
    settlement: SettlementConfig = field(default_factory=SettlementConfig)


def load_monitor_settings() -> MonitorSettings:
    """Build MonitorSettings from defaults plus env overrides"""
    return MonitorSettings(
        loan_amounts=_split_csv(os.getenv("LOAN_AMOUNTS"), LOAN_AMOUNTS),
        min_profit_usd=Decimal(os.getenv("MIN_PROFIT_THRESHOLD_USD", str(MIN_PROFIT_THRESHOLD_USD))),
        slippage_percent=Decimal(os.getenv("SLIPPAGE_PERCENT", str(SLIPPAGE_PERCENT))),
        check_interval_seconds=float(os.getenv("CHECK_INTERVAL_SECONDS", CHECK_INTERVAL_SECONDS)),
        contract_address=CONTRACT_ADDRESS,
    )
