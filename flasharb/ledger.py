# flasharb/ledger.py
"""
Profit Ledger
Single accumulator of realized profit, denominated in the swap's output asset
"""

from web3 import Web3


class ProfitLedger:
    """
    Monotonic profit accumulator.
    Only the settlement contract records into it; anyone may read it.
    """

    def __init__(self, asset: str):
        self.asset = Web3.to_checksum_address(asset)
        self._balance = 0

    @property
    def balance(self) -> int:
        return self._balance

    def record(self, amount: int) -> int:
        """Add realized profit and return the new total"""
        if amount < 0:
            raise ValueError(f"Profit cannot be negative: {amount}")
        self._balance += amount
        return self._balance

    # Transaction boundary hooks (see ExecutionHost.atomic)
    def snapshot(self) -> int:
        return self._balance

    def restore(self, snapshot: int) -> None:
        self._balance = snapshot
