# flasharb/executor.py
"""
Flash Loan Execution Engine
Submits executeFlashLoanWithSwap() to the deployed settlement contract and
waits for the outcome. The contract does all the settlement work; this side
only signs, dry-runs and reports.
"""

import time
import logging
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from decimal import Decimal
from dataclasses import dataclass
from typing import Optional
from enum import Enum

from flasharb.config import (
    CHAIN_ID, GAS_LIMIT_FLASH_LOAN, RECEIPT_TIMEOUT_SECONDS,
)
from flasharb.errors import decode_settlement_error

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ExecutionStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    REVERTED = "reverted"
    TIMEOUT = "timeout"


@dataclass
class ExecutionResult:
    """Result of one flash loan submission"""
    status: ExecutionStatus
    principal: int
    tx_hash: Optional[str] = None
    gas_used: int = 0
    expected_profit_usd: Decimal = Decimal(0)
    received: int = 0
    error: str = ""
    execution_time_ms: float = 0
    simulation_passed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS


# =============================================================================
# ABI DEFINITIONS
# =============================================================================

ARBITRAGE_ABI = [
    {
        "name": "executeFlashLoanWithSwap",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "amount", "type": "uint256"},
            {"name": "params", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "name": "getTotalProfit",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def _revert_payload(error: ContractLogicError) -> bytes:
    data = getattr(error, "data", None)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str) and data.startswith("0x"):
        try:
            return bytes(Web3.to_bytes(hexstr=data))
        except ValueError:
            return b""
    return b""


# =============================================================================
# EXECUTOR
# =============================================================================

class FlashLoanExecutor:
    """
    On-chain submitter

    Features:
    - eth_call dry run first (custom errors decoded)
    - Fixed gas limit, no estimation round trip
    - Bounded receipt wait
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        private_key: str,
        chain_id: int = CHAIN_ID,
        gas_limit: int = GAS_LIMIT_FLASH_LOAN,
        receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
        simulate_first: bool = True,
    ):
        self.w3 = w3
        self.account = w3.eth.account.from_key(private_key)
        self.address = Web3.to_checksum_address(self.account.address)
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=ARBITRAGE_ABI,
        )
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.simulate_first = simulate_first

    def _get_nonce(self) -> int:
        """Get current nonce (pending)"""
        return self.w3.eth.get_transaction_count(self.address, "pending")

    def simulate(self, principal: int, params_blob: bytes) -> Optional[str]:
        """Dry run via eth_call; returns the revert reason or None"""
        try:
            self.contract.functions.executeFlashLoanWithSwap(principal, params_blob).call({
                "from": self.address,
                "gas": self.gas_limit,
            })
        except ContractLogicError as e:
            payload = _revert_payload(e)
            return decode_settlement_error(payload) if payload else str(e)
        return None

    def submit(self, principal: int, params_blob: bytes, quote=None) -> ExecutionResult:
        """Send one flash loan and wait for it to land"""
        start_time = time.time()
        simulation_passed = False

        if self.simulate_first:
            reason = self.simulate(principal, params_blob)
            if reason is not None:
                logger.warning(f"Simulation reverted: {reason}")
                return ExecutionResult(
                    status=ExecutionStatus.FAILED,
                    principal=principal,
                    error=f"Simulation reverted: {reason}",
                    execution_time_ms=(time.time() - start_time) * 1000,
                )
            simulation_passed = True

        tx = self.contract.functions.executeFlashLoanWithSwap(principal, params_blob).build_transaction({
            "from": self.address,
            "nonce": self._get_nonce(),
            "gas": self.gas_limit,
            "gasPrice": self.w3.eth.gas_price,
            "chainId": self.chain_id,
        })

        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Flash loan tx sent: {tx_hash.hex()}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            logger.error(f"No receipt for {tx_hash.hex()} after {self.receipt_timeout}s")
            return ExecutionResult(
                status=ExecutionStatus.TIMEOUT,
                principal=principal,
                tx_hash=tx_hash.hex(),
                error=f"Receipt not found within {self.receipt_timeout}s",
                execution_time_ms=(time.time() - start_time) * 1000,
                simulation_passed=simulation_passed,
            )

        if receipt.status != 1:
            logger.warning(f"❌ Flash loan reverted: {tx_hash.hex()}")
            return ExecutionResult(
                status=ExecutionStatus.REVERTED,
                principal=principal,
                tx_hash=tx_hash.hex(),
                gas_used=receipt.gasUsed,
                error="Flash loan transaction reverted",
                execution_time_ms=(time.time() - start_time) * 1000,
                simulation_passed=simulation_passed,
            )

        logger.info(f"✅ Flash loan confirmed in block {receipt.blockNumber}. Gas used: {receipt.gasUsed}")
        return ExecutionResult(
            status=ExecutionStatus.SUCCESS,
            principal=principal,
            tx_hash=tx_hash.hex(),
            gas_used=receipt.gasUsed,
            execution_time_ms=(time.time() - start_time) * 1000,
            simulation_passed=simulation_passed,
        )

    def get_total_profit(self) -> int:
        return self.contract.functions.getTotalProfit().call()
