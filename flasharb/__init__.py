# flasharb/__init__.py
"""
Arbitrum Flash Loan Arbitrage Bot
Borrow WETH by flash loan, swap part of it through ParaSwap, repay in the
same transaction and keep the output.

Modules:
- config: Configuration and environment
- tokens: Token and protocol registry
- quote_client: ParaSwap price routes
- profit_evaluator: Quote profitability
- swap_builder: Router calldata and settlement params
- allowance: Allowance top-ups
- chain: In-process execution host
- lending_pool: Simulated Aave V3 flash loans
- settlement: Flash loan receiver / settlement engine
- ledger: Profit accumulator
- executor: On-chain submission
- paper: In-process submission
- monitor: Monitoring loop
- main: Entry point
"""

__version__ = "1.0.0"

# Core components
from flasharb.config import (
    CHAIN_ID,
    CONTRACT_ADDRESS,
    MonitorSettings,
    SettlementConfig,
)

from flasharb.tokens import (
    WETH,
    DAI,
    USDC,
    USDT,
    TOKENS,
)

__all__ = [
    "CHAIN_ID",
    "CONTRACT_ADDRESS",
    "MonitorSettings",
    "SettlementConfig",
    "WETH",
    "DAI",
    "USDC",
    "USDT",
    "TOKENS",
]
