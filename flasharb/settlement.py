# flasharb/settlement.py
"""
Atomic Settlement Engine
The flash loan receiver: borrow -> swap a fraction -> check slippage ->
check repayment -> approve repayment -> record profit.

Everything between loan receipt and repayment runs inside one
ExecutionHost.atomic() unit. Any error unwinds balances, allowances and the
profit ledger together; nothing here compensates by hand.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from web3 import Web3

from flasharb.allowance import AllowanceManager
from flasharb.chain import ExecutionHost
from flasharb.config import SettlementConfig
from flasharb.errors import (
    ApprovalFailed, InsufficientReserve, InvalidLoanAmount, Revert,
    SlippageExceeded, SwapFailed, Unauthorized, WrongAsset,
    extract_revert_reason,
)
from flasharb.ledger import ProfitLedger
from flasharb.settlement_params import SettlementParams, decode_settlement_params
from flasharb.tokens import get_symbol

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class SettlementStage(Enum):
    IDLE = "idle"
    AUTHORIZE_CALLBACK = "authorize_callback"
    DECODE_PARAMS = "decode_params"
    PREPARE_SWAP = "prepare_swap"
    EXECUTE_SWAP = "execute_swap"
    VALIDATE_SLIPPAGE = "validate_slippage"
    VALIDATE_REPAYMENT = "validate_repayment"
    APPROVE_REPAYMENT = "approve_repayment"
    RECORD_PROFIT = "record_profit"
    COMPLETE = "complete"


@dataclass(frozen=True)
class LoanRequest:
    """The one loan in flight; lives only for the duration of the transaction"""
    borrowed_asset: str
    principal: int
    params: bytes


@dataclass(frozen=True)
class SettlementReport:
    """Outcome of a settlement that committed"""
    principal: int
    premium: int
    swap_amount: int
    received: int
    repay_amount: int
    total_profit: int


# =============================================================================
# SETTLEMENT CONTRACT
# =============================================================================

class FlashLoanArbitrage:
    """
    Settlement contract model.

    The lending pool is the only trusted caller of execute_operation(), and
    only while a loan started by execute_flash_loan_with_swap() is in flight.
    """

    def __init__(
        self,
        host: ExecutionHost,
        address: str,
        owner: str,
        pool,
        config: SettlementConfig = SettlementConfig(),
    ):
        self.host = host
        self.address = Web3.to_checksum_address(address)
        self.owner = Web3.to_checksum_address(owner)
        self.pool = pool
        self.config = config

        self.ledger = ProfitLedger(config.swap_dest_asset)
        host.track(self.ledger)
        self.allowances = AllowanceManager(host.tokens, self.address)

        self.stage = SettlementStage.IDLE
        self.last_settlement: Optional[SettlementReport] = None
        self._in_flight: Optional[LoanRequest] = None

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def execute_flash_loan_with_swap(self, caller: str, principal: int, params: bytes) -> SettlementReport:
        """Owner-only: borrow `principal` of the loan asset and settle `params`"""
        if Web3.to_checksum_address(caller) != self.owner:
            raise Unauthorized(f"Caller {caller} is not the owner")
        if principal <= 0:
            raise InvalidLoanAmount(f"Principal must be positive, got {principal}")
        if self._in_flight is not None:
            raise Unauthorized("A flash loan is already in flight")

        self._in_flight = LoanRequest(self.config.loan_asset, principal, bytes(params))
        self.last_settlement = None
        try:
            self.pool.flash_loan_simple(
                caller=self.address,
                receiver=self,
                asset=self.config.loan_asset,
                amount=principal,
                params=bytes(params),
            )
        finally:
            self._in_flight = None

        return self.last_settlement

    def execute_operation(
        self,
        caller: str,
        asset: str,
        amount: int,
        premium: int,
        initiator: str,
        params: bytes,
    ) -> bool:
        """Flash loan callback. Aborts by raising; returns True on success."""
        with self.host.atomic():
            self.stage = SettlementStage.AUTHORIZE_CALLBACK
            self._authorize_callback(caller, asset, amount, params)

            self.stage = SettlementStage.DECODE_PARAMS
            decoded = decode_settlement_params(params)

            self.stage = SettlementStage.PREPARE_SWAP
            swap_amount = amount * self.config.swap_fraction_bps // 10000
            self.allowances.ensure_all(
                asset,
                (decoded.router_address, self.config.transfer_proxy),
                swap_amount,
            )

            self.stage = SettlementStage.EXECUTE_SWAP
            received = self._execute_swap(decoded)

            self.stage = SettlementStage.VALIDATE_SLIPPAGE
            if received < decoded.min_acceptable_output:
                raise SlippageExceeded(received, decoded.min_acceptable_output)

            self.stage = SettlementStage.VALIDATE_REPAYMENT
            repay_amount = amount + premium
            balance = self.host.tokens.balance_of(asset, self.address)
            if balance < repay_amount:
                raise InsufficientReserve(balance, repay_amount)

            self.stage = SettlementStage.APPROVE_REPAYMENT
            try:
                self.host.tokens.approve(asset, self.address, self.config.lending_pool, repay_amount)
            except Revert as e:
                raise ApprovalFailed(f"Repayment approval failed: {e}") from e

            self.stage = SettlementStage.RECORD_PROFIT
            total = self.ledger.record(received)

            self.stage = SettlementStage.COMPLETE
            self.last_settlement = SettlementReport(
                principal=amount,
                premium=premium,
                swap_amount=swap_amount,
                received=received,
                repay_amount=repay_amount,
                total_profit=total,
            )

        logger.info(
            f"Settlement complete: swapped {swap_amount} {get_symbol(asset)}, "
            f"received {received} {get_symbol(self.ledger.asset)}, repay {repay_amount}"
        )
        return True

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _authorize_callback(self, caller: str, asset: str, amount: int, params: bytes) -> LoanRequest:
        if Web3.to_checksum_address(caller) != Web3.to_checksum_address(self.config.lending_pool):
            raise Unauthorized(f"Callback from untrusted caller {caller}")
        if Web3.to_checksum_address(asset) != Web3.to_checksum_address(self.config.loan_asset):
            raise WrongAsset(f"Borrowed {asset}, expected {self.config.loan_asset}")

        request = self._in_flight
        if request is None:
            raise Unauthorized("No flash loan in flight")
        if request.principal != amount or request.params != bytes(params):
            raise Unauthorized("Callback does not match the loan in flight")

        # single use: a second callback for the same loan is rejected
        self._in_flight = None
        return request

    def _execute_swap(self, params: SettlementParams) -> int:
        dest = self.ledger.asset
        pre_balance = self.host.tokens.balance_of(dest, self.address)

        ok, payload = self.host.call(self.address, params.router_address, params.swap_call_data)
        if not ok:
            reason = extract_revert_reason(payload)
            logger.warning(f"Router call reverted: {reason}")
            raise SwapFailed(reason)

        post_balance = self.host.tokens.balance_of(dest, self.address)
        return post_balance - pre_balance

    # -------------------------------------------------------------------------
    # Queries & administration
    # -------------------------------------------------------------------------

    def get_total_profit(self) -> int:
        return self.ledger.balance

    def withdraw_token(self, caller: str, token: str) -> int:
        """Owner-only rescue of the contract's whole balance of `token`"""
        if Web3.to_checksum_address(caller) != self.owner:
            raise Unauthorized(f"Caller {caller} is not the owner")
        with self.host.atomic():
            amount = self.host.tokens.balance_of(token, self.address)
            if amount:
                self.host.tokens.transfer(token, self.address, self.owner, amount)
        return amount
