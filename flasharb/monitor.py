# flasharb/monitor.py
"""
Arbitrage Monitoring Loop
quote -> evaluate -> (skip | build -> submit) for every configured loan size,
then sleep. One loan size is fully resolved before the next one starts.

MODES:
1. SCAN_ONLY: quote + evaluate, never build or submit
2. SIMULATE: settle in-process (PaperSubmitter)
3. EXECUTE: real flash loans (FlashLoanExecutor)
"""

import time
import signal
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Protocol

from web3 import Web3

from flasharb.allowance import AllowanceGateway, AllowanceManager
from flasharb.config import CHAIN_ID, MonitorSettings
from flasharb.errors import FlashArbError
from flasharb.executor import ExecutionResult
from flasharb.profit_evaluator import profit_guard
from flasharb.quote_client import Quote, QuoteClient
from flasharb.swap_builder import SwapBuilder, slippage_percent_to_bps
from flasharb.tokens import get_symbol, to_base_units

logger = logging.getLogger(__name__)


class Submitter(Protocol):
    def submit(self, principal: int, params_blob: bytes, quote: Optional[Quote] = None) -> ExecutionResult:
        ...


# =============================================================================
# STATISTICS TRACKER
# =============================================================================

class StatisticsTracker:
    """Track monitor statistics"""

    def __init__(self):
        self.start_time = datetime.now()
        self.cycles = 0
        self.quotes = 0
        self.skips = 0
        self.submissions = 0
        self.successes = 0
        self.failures = 0
        self.errors = 0
        self.expected_profit_usd = Decimal(0)

    def record_cycle(self):
        self.cycles += 1

    def record_quote(self):
        self.quotes += 1

    def record_skip(self):
        self.skips += 1

    def record_error(self):
        self.errors += 1

    def record_submission(self, success: bool, profit_usd: Decimal = Decimal(0)):
        self.submissions += 1
        if success:
            self.successes += 1
            self.expected_profit_usd += profit_usd
        else:
            self.failures += 1

    def get_summary(self) -> str:
        runtime = datetime.now() - self.start_time
        success_rate = (self.successes / self.submissions * 100) if self.submissions > 0 else 0

        return (
            f"\n{'='*60}\n"
            f"📊 MONITOR STATISTICS\n"
            f"{'='*60}\n"
            f"Runtime: {runtime}\n"
            f"Cycles: {self.cycles}\n"
            f"Quotes: {self.quotes}\n"
            f"Skipped (below threshold): {self.skips}\n"
            f"Flash Loans Submitted: {self.submissions}\n"
            f"Successful: {self.successes} ({success_rate:.1f}%)\n"
            f"Failed: {self.failures}\n"
            f"Errors: {self.errors}\n"
            f"Expected Profit: ${self.expected_profit_usd:.4f}\n"
            f"{'='*60}\n"
        )


# =============================================================================
# MODES
# =============================================================================

class BotMode:
    SCAN_ONLY = "scan_only"      # Quote and evaluate only
    SIMULATE = "simulate"        # Settle against the in-process host
    EXECUTE = "execute"          # Real flash loans


# =============================================================================
# MONITOR
# =============================================================================

class ArbitrageMonitor:

    def __init__(
        self,
        settings: MonitorSettings,
        quote_client: QuoteClient,
        builder: Optional[SwapBuilder] = None,
        submitter: Optional[Submitter] = None,
        mode: str = BotMode.SCAN_ONLY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if mode != BotMode.SCAN_ONLY and (builder is None or submitter is None):
            raise ValueError(f"Mode {mode} needs a builder and a submitter")

        self.settings = settings
        self.quote_client = quote_client
        self.builder = builder
        self.submitter = submitter
        self.mode = mode
        self.sleep = sleep
        self.slippage_bps = slippage_percent_to_bps(settings.slippage_percent)
        self.stats = StatisticsTracker()
        self.running = False

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info("🛑 Shutdown signal received...")
        self.running = False

    def process_loan_size(self, amount_human: str) -> Optional[ExecutionResult]:
        """
        Evaluate and (if worth it) settle one flash loan of `amount_human`
        units of the loan asset. Returns None when nothing was submitted.
        """
        cfg = self.settings.settlement
        principal = to_base_units(amount_human, cfg.loan_asset)
        if principal <= 0:
            raise ValueError(f"Loan amount must be positive, got {amount_human}")

        # the contract swaps only this fraction; quote and build for exactly that
        swap_amount = principal * cfg.swap_fraction_bps // 10000

        logger.info(
            f"Checking {amount_human} {get_symbol(cfg.loan_asset)} loan "
            f"({get_symbol(cfg.loan_asset)} -> {get_symbol(cfg.swap_dest_asset)}, swap {swap_amount})"
        )
        quote = self.quote_client.get_quote(cfg.loan_asset, cfg.swap_dest_asset, swap_amount)
        self.stats.record_quote()

        evaluation = profit_guard(quote, self.settings.min_profit_usd)
        logger.info(f"Potential profit: ${evaluation.profit_usd:.2f}")

        if not evaluation.ok:
            logger.info("Skipping - below profit threshold")
            self.stats.record_skip()
            return None

        logger.info(f"💰 PROFITABLE: ${evaluation.profit_usd:.2f} >= ${evaluation.threshold_usd:.2f}")

        if self.mode == BotMode.SCAN_ONLY:
            logger.info("SCAN_ONLY mode - not executing")
            return None

        built = self.builder.build(quote, self.slippage_bps, self.settings.contract_address)
        result = self.submitter.submit(principal, built.blob, quote)
        result.expected_profit_usd = evaluation.profit_usd

        self.stats.record_submission(result.succeeded, evaluation.profit_usd)
        if result.succeeded:
            logger.info(f"✅ Flash loan settled. TX: {result.tx_hash}")
        else:
            logger.warning(f"❌ Flash loan {result.status.value}: {result.error}")
        return result

    def run_cycle(self) -> int:
        """One pass over all loan sizes; returns the number of submissions"""
        self.stats.record_cycle()
        submitted = 0

        for amount in self.settings.loan_amounts:
            try:
                if self.process_loan_size(amount) is not None:
                    submitted += 1
            except FlashArbError as e:
                logger.warning(f"Loan size {amount} abandoned: {e}")
                self.stats.record_error()
            except Exception as e:
                logger.error(f"Cycle error for loan size {amount}: {e}")
                self.stats.record_error()

        return submitted

    def run(self, max_cycles: Optional[int] = None):
        """
        Main loop
        Runs until a shutdown signal arrives or max_cycles have completed.
        """
        logger.info("=" * 60)
        logger.info("🚀 Starting arbitrage monitor...")
        logger.info(f"Mode: {self.mode}")
        logger.info(f"Loan sizes: {', '.join(self.settings.loan_amounts)}")
        logger.info(f"Min profit: ${self.settings.min_profit_usd} | Slippage: {self.slippage_bps} bps")
        logger.info("=" * 60)

        previous = {
            signal.SIGINT: signal.signal(signal.SIGINT, self._handle_shutdown),
            signal.SIGTERM: signal.signal(signal.SIGTERM, self._handle_shutdown),
        }
        self.running = True

        try:
            while self.running:
                self.run_cycle()
                if max_cycles is not None and self.stats.cycles >= max_cycles:
                    break
                self.sleep(self.settings.check_interval_seconds)
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
            self.running = False
            logger.info(self.stats.get_summary())
            logger.info("Monitor stopped.")


# =============================================================================
# STARTUP CHECKS
# =============================================================================

def verify_setup(w3: Web3, account_address: str, expected_chain_id: int = CHAIN_ID) -> bool:
    """Check network, signer and native balance before the loop starts"""
    try:
        logger.info("Verifying network connection...")
        chain_id = w3.eth.chain_id
        if chain_id != expected_chain_id:
            logger.error(f"❌ Connected to chain {chain_id}, expected {expected_chain_id}")
            return False
        logger.info(f"✅ Connected to chain {chain_id}")

        logger.info("Verifying signer...")
        address = Web3.to_checksum_address(account_address)
        balance = w3.eth.get_balance(address)
        logger.info(f"Signer address: {address}")
        logger.info(f"Balance: {Web3.from_wei(balance, 'ether')} ETH")
        if balance == 0:
            logger.warning("⚠️ Signer has no ETH for gas!")
    except Exception as e:
        logger.error(f"❌ Setup verification failed: {e}")
        return False

    return True


def ensure_wallet_approvals(gateway: AllowanceGateway, owner: str, tokens: Iterable[str], spenders: Iterable[str]) -> int:
    """
    Startup approval check for the signer wallet: any token/spender pair
    with a zero allowance gets MAX_UINT256. Returns the number of grants.
    """
    manager = AllowanceManager(gateway, owner)
    spenders = list(spenders)
    granted = 0
    for token in tokens:
        granted += manager.ensure_all(token, spenders, 1)
    logger.info(f"Wallet approvals verified ({granted} granted)")
    return granted
