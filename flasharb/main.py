# flasharb/main.py
"""
Flash Loan Arbitrage Main Loop
WETH flash loan -> ParaSwap swap -> repay, on Arbitrum

THIS IS THE ENTRY POINT - Run with: python -m flasharb.main

MODES:
1. scan: quote + evaluate only (safe)
2. simulate: settle against an in-process pool (safe)
3. execute: real flash loans through the deployed contract
"""

import sys
import logging
import argparse
from datetime import datetime
from pathlib import Path

from web3 import Web3

from flasharb.allowance import Web3TokenGateway
from flasharb.config import (
    CHAIN_NAME, LOG_LEVEL, RPC_URL, load_monitor_settings, require_env,
)
from flasharb.executor import FlashLoanExecutor
from flasharb.monitor import ArbitrageMonitor, BotMode, ensure_wallet_approvals, verify_setup
from flasharb.paper import PaperSubmitter
from flasharb.quote_client import QuoteClient
from flasharb.swap_builder import SwapBuilder

logger = logging.getLogger(__name__)

LOG_DIR = Path(__file__).parent.parent / "logs"


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging():
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOG_DIR / f"flasharb_{datetime.now().strftime('%Y%m%d')}.log"),
        ]
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Arbitrum Flash Loan Arbitrage Bot")
    parser.add_argument(
        "--mode",
        choices=["scan", "simulate", "execute"],
        default="scan",
        help="Bot mode: scan (observe only), simulate (paper settlement), execute (real flash loans)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit"
    )
    parser.add_argument(
        "--approve-wallet",
        action="store_true",
        help="Check signer wallet approvals before starting (execute mode)"
    )

    args = parser.parse_args()
    setup_logging()

    mode_map = {
        "scan": BotMode.SCAN_ONLY,
        "simulate": BotMode.SIMULATE,
        "execute": BotMode.EXECUTE,
    }
    mode = mode_map[args.mode]
    settings = load_monitor_settings()

    quote_client = QuoteClient(network=settings.chain_id)
    builder = SwapBuilder(network=settings.chain_id, session=quote_client.session)
    submitter = None

    if mode == BotMode.SIMULATE:
        submitter = PaperSubmitter(settings)

    elif mode == BotMode.EXECUTE:
        try:
            rpc_url = RPC_URL or require_env("RPC_URL")
            private_key = require_env("PRIVATE_KEY")
        except RuntimeError as e:
            logger.error(f"❌ {e}")
            sys.exit(1)

        logger.info(f"Connecting to RPC: {rpc_url}")
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        account = w3.eth.account.from_key(private_key)

        if not verify_setup(w3, account.address, settings.chain_id):
            logger.error("Exiting due to setup verification failure")
            sys.exit(1)
        logger.info(f"✅ Connected to {CHAIN_NAME}")

        if args.approve_wallet:
            cfg = settings.settlement
            spender = quote_client.get_spender()
            logger.info(f"Verifying approvals for ParaSwap spender {spender} and contract {settings.contract_address}")
            try:
                ensure_wallet_approvals(
                    Web3TokenGateway(w3, private_key, settings.chain_id),
                    account.address,
                    tokens=(cfg.swap_dest_asset, cfg.loan_asset),
                    spenders=(spender, settings.contract_address),
                )
            except Exception as e:
                logger.error(f"❌ Approval check failed: {e}")
                sys.exit(1)

        submitter = FlashLoanExecutor(
            w3,
            settings.contract_address,
            private_key,
            chain_id=settings.chain_id,
        )

    monitor = ArbitrageMonitor(
        settings,
        quote_client,
        builder=builder,
        submitter=submitter,
        mode=mode,
    )
    monitor.run(max_cycles=1 if args.once else None)


if __name__ == "__main__":
    main()
