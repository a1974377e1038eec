# flasharb/lending_pool.py
"""
Simulated Aave V3 pool (flashLoanSimple only)
Disburses, calls back the receiver, then pulls principal + premium through
the allowance the receiver granted. The whole loan is one atomic unit.
"""

import logging

from web3 import Web3

from flasharb.chain import ExecutionHost
from flasharb.errors import LendingPoolError, Revert
from flasharb.tokens import AAVE_FLASH_FEE_BPS, get_symbol

logger = logging.getLogger(__name__)


def calculate_premium(amount: int, fee_bps: int) -> int:
    """Flash loan fee in base units (rounded down)"""
    return (amount * fee_bps) // 10000


class SimulatedLendingPool:

    def __init__(self, host: ExecutionHost, address: str, premium_bps: int = AAVE_FLASH_FEE_BPS):
        self.host = host
        self.address = Web3.to_checksum_address(address)
        self.premium_bps = premium_bps

    def available_liquidity(self, asset: str) -> int:
        return self.host.tokens.balance_of(asset, self.address)

    def flash_loan_simple(self, caller: str, receiver, asset: str, amount: int, params: bytes) -> int:
        """Run one flash loan; returns the premium paid"""
        if amount <= 0:
            raise LendingPoolError("INVALID_AMOUNT")

        with self.host.atomic():
            liquidity = self.available_liquidity(asset)
            if liquidity < amount:
                raise LendingPoolError(f"Insufficient liquidity: {liquidity} < {amount}")

            premium = calculate_premium(amount, self.premium_bps)
            self.host.tokens.transfer(asset, self.address, receiver.address, amount)
            logger.info(f"Flash loan: {amount} {get_symbol(asset)} -> {receiver.address} (premium {premium})")

            ok = receiver.execute_operation(
                caller=self.address,
                asset=asset,
                amount=amount,
                premium=premium,
                initiator=caller,
                params=params,
            )
            if ok is not True:
                raise LendingPoolError("INVALID_FLASHLOAN_EXECUTOR_RETURN")

            try:
                self.host.tokens.transfer_from(asset, self.address, receiver.address, self.address, amount + premium)
            except Revert as e:
                raise LendingPoolError(f"Repayment pull failed: {e}") from e

        return premium
