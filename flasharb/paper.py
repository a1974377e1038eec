# flasharb/paper.py
"""
Paper settlement for simulate mode.
Runs the real settlement contract model against an in-process pool and a
router that fills exactly at the quoted output.
"""

import time
import logging
from typing import Optional

from web3 import Web3

from flasharb.chain import ExecutionHost
from flasharb.config import MonitorSettings, PAPER_POOL_LIQUIDITY, PAPER_RESERVE
from flasharb.errors import DecodeFault, Revert, SettlementError, encode_revert_reason
from flasharb.executor import ExecutionResult, ExecutionStatus
from flasharb.lending_pool import SimulatedLendingPool
from flasharb.quote_client import Quote
from flasharb.settlement import FlashLoanArbitrage
from flasharb.settlement_params import decode_settlement_params
from flasharb.tokens import AAVE_FLASH_FEE_BPS, from_base_units, get_symbol, to_base_units

logger = logging.getLogger(__name__)

# Signer of paper transactions; owns the simulated contract
PAPER_OWNER = Web3.to_checksum_address("0x000000000000000000000000000000000000dEaD")


class QuotedRouter:
    """Pulls the quoted input from the caller and pays out the quoted output"""

    def __init__(self, address: str, quote: Quote):
        self.address = Web3.to_checksum_address(address)
        self.quote = quote

    def handle_call(self, host: ExecutionHost, sender: str, data: bytes) -> bytes:
        if not data:
            raise Revert(encode_revert_reason("Router: empty calldata"))
        host.tokens.transfer_from(
            self.quote.source_asset, self.address, sender, self.address, self.quote.source_amount,
        )
        host.tokens.mint(self.quote.dest_asset, sender, self.quote.dest_amount)
        return b""


class PaperSubmitter:
    """Same submit() surface as FlashLoanExecutor, settled in-process"""

    def __init__(
        self,
        settings: MonitorSettings,
        pool_liquidity: str = PAPER_POOL_LIQUIDITY,
        reserve: str = PAPER_RESERVE,
        premium_bps: int = AAVE_FLASH_FEE_BPS,
        owner: str = PAPER_OWNER,
    ):
        cfg = settings.settlement
        self.host = ExecutionHost()
        self.owner = Web3.to_checksum_address(owner)
        self.pool = SimulatedLendingPool(self.host, cfg.lending_pool, premium_bps=premium_bps)
        self.contract = FlashLoanArbitrage(
            self.host,
            address=settings.contract_address,
            owner=self.owner,
            pool=self.pool,
            config=cfg,
        )
        self.host.tokens.mint(cfg.loan_asset, self.pool.address, to_base_units(pool_liquidity, cfg.loan_asset))
        self.host.tokens.mint(cfg.loan_asset, self.contract.address, to_base_units(reserve, cfg.loan_asset))
        logger.info(
            f"Paper settlement ready: pool {pool_liquidity} {get_symbol(cfg.loan_asset)}, "
            f"reserve {reserve} {get_symbol(cfg.loan_asset)}"
        )

    def reserve_balance(self) -> int:
        return self.host.tokens.balance_of(self.contract.config.loan_asset, self.contract.address)

    def submit(self, principal: int, params_blob: bytes, quote: Optional[Quote] = None) -> ExecutionResult:
        start_time = time.time()
        if quote is None:
            raise ValueError("Paper settlement needs the quote to fill at")

        try:
            router = decode_settlement_params(params_blob).router_address
            self.host.deploy(router, QuotedRouter(router, quote))
        except DecodeFault:
            # the contract rejects the blob itself below
            pass

        try:
            report = self.contract.execute_flash_loan_with_swap(self.owner, principal, params_blob)
        except SettlementError as e:
            logger.warning(f"❌ Paper settlement aborted: {e}")
            return ExecutionResult(
                status=ExecutionStatus.REVERTED,
                principal=principal,
                error=str(e),
                execution_time_ms=(time.time() - start_time) * 1000,
                simulation_passed=True,
            )

        dest = self.contract.ledger.asset
        logger.info(
            f"✅ Paper settlement: received {from_base_units(report.received, dest)} {get_symbol(dest)}, "
            f"total profit {from_base_units(report.total_profit, dest)} {get_symbol(dest)}"
        )
        return ExecutionResult(
            status=ExecutionStatus.SUCCESS,
            principal=principal,
            received=report.received,
            execution_time_ms=(time.time() - start_time) * 1000,
            simulation_passed=True,
        )

    def get_total_profit(self) -> int:
        return self.contract.get_total_profit()
