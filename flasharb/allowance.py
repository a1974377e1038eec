# flasharb/allowance.py
"""
Allowance Manager
Keeps spenders authorized before a swap, topping up only when needed.
Grants are always MAX_UINT256 and never lowered: repeated attempts then
skip the grant entirely.
"""

import logging
from typing import Iterable, Protocol

from web3 import Web3

from flasharb.config import CHAIN_ID, GAS_LIMIT_APPROVAL, RECEIPT_TIMEOUT_SECONDS
from flasharb.errors import ApprovalFailed, Revert, SetupError
from flasharb.tokens import MAX_UINT256, from_base_units, get_symbol

logger = logging.getLogger(__name__)


ERC20_ABI = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class AllowanceGateway(Protocol):
    """Where allowances live: the in-process TokenLedger or a real chain"""

    def allowance(self, token: str, owner: str, spender: str) -> int:
        ...

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        ...


# =============================================================================
# ALLOWANCE MANAGER
# =============================================================================

class AllowanceManager:
    """Idempotent allowance top-up for a single owner"""

    def __init__(self, gateway: AllowanceGateway, owner: str):
        self.gateway = gateway
        self.owner = Web3.to_checksum_address(owner)

    def ensure(self, token: str, spender: str, amount: int) -> bool:
        """
        Make sure `spender` may move at least `amount` of `token`.
        Returns True if a grant was issued, False if the allowance already
        covered the amount.
        """
        spender = Web3.to_checksum_address(spender)
        before = self.gateway.allowance(token, self.owner, spender)
        logger.info(
            f"{get_symbol(token)} allowance for {spender}: "
            f"{from_base_units(before, token)} (need {from_base_units(amount, token)})"
        )

        if before >= amount:
            return False

        try:
            self.gateway.approve(token, self.owner, spender, MAX_UINT256)
        except Revert as e:
            raise ApprovalFailed(f"Approve {get_symbol(token)} for {spender} failed: {e}") from e

        after = self.gateway.allowance(token, self.owner, spender)
        logger.info(f"{get_symbol(token)} allowance for {spender}: {before} -> {after}")
        if after < amount:
            raise ApprovalFailed(f"Allowance for {spender} still {after} < {amount} after approve")
        return True

    def ensure_all(self, token: str, spenders: Iterable[str], amount: int) -> int:
        """Apply ensure() to each spender; returns the number of grants issued"""
        return sum(1 for spender in spenders if self.ensure(token, spender, amount))


# =============================================================================
# WEB3 GATEWAY (signer wallet on a live chain)
# =============================================================================

class Web3TokenGateway:
    """
    ERC20 allowances of an externally owned account.
    approve() signs, broadcasts and waits for the receipt.
    """

    def __init__(self, w3: Web3, private_key: str, chain_id: int = CHAIN_ID):
        self.w3 = w3
        self.account = w3.eth.account.from_key(private_key)
        self.address = Web3.to_checksum_address(self.account.address)
        self.chain_id = chain_id
        self._token_cache = {}

    def _get_token(self, address: str):
        """Get cached token contract"""
        address = Web3.to_checksum_address(address)
        if address not in self._token_cache:
            self._token_cache[address] = self.w3.eth.contract(address=address, abi=ERC20_ABI)
        return self._token_cache[address]

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._get_token(token).functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        ).call()

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if Web3.to_checksum_address(owner) != self.address:
            raise ValueError(f"Cannot approve on behalf of {owner}")

        tx = self._get_token(token).functions.approve(
            Web3.to_checksum_address(spender),
            amount,
        ).build_transaction({
            "from": self.address,
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "gas": GAS_LIMIT_APPROVAL,
            "gasPrice": self.w3.eth.gas_price,
            "chainId": self.chain_id,
        })

        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Approval tx sent: {tx_hash.hex()}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS)
        if receipt.status != 1:
            raise SetupError(f"Approval transaction {tx_hash.hex()} failed")
        logger.info(f"{get_symbol(token)} approved for {spender}. Gas used: {receipt.gasUsed}")
