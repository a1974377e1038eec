# flasharb/chain.py
"""
In-process execution host
Models the pieces of EVM state the settlement touches (ERC20 balances and
allowances, deployed contracts) with all-or-nothing transaction semantics.
"""

import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Protocol, Set, Tuple

from web3 import Web3

from flasharb.errors import Revert, encode_revert_reason
from flasharb.tokens import MAX_UINT256, get_symbol, requires_zero_allowance

logger = logging.getLogger(__name__)


def _addr(address: str) -> str:
    return Web3.to_checksum_address(address)


# =============================================================================
# ERC20 STATE
# =============================================================================

class TokenLedger:
    """
    Balances and allowances of every token, keyed by checksummed address.
    Mirrors OpenZeppelin ERC20: an infinite allowance is never decremented.
    """

    def __init__(self, zero_first_tokens: Optional[Set[str]] = None):
        self._balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str, str], int] = {}
        self._zero_first = {_addr(t) for t in (zero_first_tokens or set())}

    def _requires_zero_first(self, token: str) -> bool:
        return token in self._zero_first or requires_zero_allowance(token)

    def mint(self, token: str, holder: str, amount: int) -> None:
        key = (_addr(token), _addr(holder))
        self._balances[key] = self._balances.get(key, 0) + amount

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get((_addr(token), _addr(holder)), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((_addr(token), _addr(owner), _addr(spender)), 0)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        token = _addr(token)
        if not 0 <= amount <= MAX_UINT256:
            raise Revert(encode_revert_reason("ERC20: invalid amount"))
        current = self.allowance(token, owner, spender)
        if self._requires_zero_first(token) and current != 0 and amount != 0:
            raise Revert(encode_revert_reason(f"{get_symbol(token)}: approve from non-zero allowance"))
        self._allowances[(token, _addr(owner), _addr(spender))] = amount

    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        token, sender, to = _addr(token), _addr(sender), _addr(to)
        balance = self.balance_of(token, sender)
        if amount < 0 or balance < amount:
            raise Revert(encode_revert_reason("ERC20: transfer amount exceeds balance"))
        self._balances[(token, sender)] = balance - amount
        self._balances[(token, to)] = self.balance_of(token, to) + amount

    def transfer_from(self, token: str, spender: str, owner: str, to: str, amount: int) -> None:
        current = self.allowance(token, owner, spender)
        if current < amount:
            raise Revert(encode_revert_reason("ERC20: insufficient allowance"))
        self.transfer(token, owner, to, amount)
        if current != MAX_UINT256:
            self._allowances[(_addr(token), _addr(owner), _addr(spender))] = current - amount

    def snapshot(self):
        return dict(self._balances), dict(self._allowances)

    def restore(self, snapshot) -> None:
        balances, allowances = snapshot
        self._balances = dict(balances)
        self._allowances = dict(allowances)


# =============================================================================
# EXECUTION HOST
# =============================================================================

class Contract(Protocol):
    """A deployed contract reachable through ExecutionHost.call"""

    def handle_call(self, host: "ExecutionHost", sender: str, data: bytes) -> bytes:
        ...


class Stateful(Protocol):
    def snapshot(self): ...

    def restore(self, snapshot) -> None: ...


class ExecutionHost:
    """
    Single-threaded transaction host.

    `atomic()` is the settlement unit: every tracked piece of state is
    snapshotted on entry and restored if anything raises inside it.
    `call()` opens a nested frame around a contract call, so a reverting
    callee only loses its own changes and the caller sees (False, payload).
    """

    def __init__(self, tokens: Optional[TokenLedger] = None):
        self.tokens = tokens or TokenLedger()
        self._contracts: Dict[str, Contract] = {}
        self._tracked: List[Stateful] = [self.tokens]

    def deploy(self, address: str, contract: Contract) -> None:
        self._contracts[_addr(address)] = contract

    def track(self, state: Stateful) -> None:
        """Include extra state (e.g. a profit ledger) in transaction rollback"""
        self._tracked.append(state)

    def _snapshot(self) -> list:
        return [s.snapshot() for s in self._tracked]

    def _restore(self, saved: list) -> None:
        for state, snap in zip(self._tracked, saved):
            state.restore(snap)

    @contextmanager
    def atomic(self):
        saved = self._snapshot()
        try:
            yield self
        except Exception:
            self._restore(saved)
            logger.debug("Transaction reverted, state restored")
            raise

    def call(self, sender: str, target: str, data: bytes) -> Tuple[bool, bytes]:
        """Low-level call: returns (success, returndata or revert payload)"""
        contract = self._contracts.get(_addr(target))
        if contract is None:
            # EVM calls to an address without code succeed and do nothing
            logger.warning(f"Call to {target} which has no code")
            return True, b""

        saved = self._snapshot()
        try:
            result = contract.handle_call(self, _addr(sender), bytes(data))
        except Revert as e:
            self._restore(saved)
            return False, e.data
        return True, result or b""
