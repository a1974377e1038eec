# flasharb/errors.py
"""
Error taxonomy for the flash arbitrage pipeline

Settlement errors abort the whole atomic unit they are raised in.
Off-chain errors are recovered per monitoring cycle, except SetupError.
"""

from typing import Dict, Optional

from eth_abi import decode, encode
from eth_utils import keccak

# Solidity `Error(string)` selector
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")
SILENT_REVERT_REASON = "Transaction reverted silently"

# selector (4 bytes) + offset word + length word
_MIN_REASON_PAYLOAD = 68


class FlashArbError(Exception):
    """Base class for every error raised by flasharb"""


# =============================================================================
# SETTLEMENT (ON-CHAIN) ERRORS
# =============================================================================

class SettlementError(FlashArbError):
    """Aborts the settlement unit; nothing it did persists"""


class Unauthorized(SettlementError):
    pass


class WrongAsset(SettlementError):
    pass


class DecodeFault(SettlementError):
    pass


class SwapFailed(SettlementError):
    def __init__(self, reason: str):
        super().__init__(f"Swap failed: {reason}")
        self.reason = reason


class SlippageExceeded(SettlementError):
    def __init__(self, received: int, min_acceptable: int):
        super().__init__(f"Slippage exceeded: received {received} < min {min_acceptable}")
        self.received = received
        self.min_acceptable = min_acceptable


class InsufficientReserve(SettlementError):
    def __init__(self, balance: int, required: int):
        super().__init__(f"Insufficient reserve: balance {balance} < repay {required}")
        self.balance = balance
        self.required = required


class ApprovalFailed(SettlementError):
    pass


class InvalidLoanAmount(SettlementError):
    pass


class LendingPoolError(SettlementError):
    pass


class Revert(FlashArbError):
    """Raised by a called contract; carries the raw revert payload"""

    def __init__(self, data: bytes = b""):
        super().__init__(extract_revert_reason(data))
        self.data = data


# =============================================================================
# OFF-CHAIN ERRORS
# =============================================================================

class QuoteUnavailable(FlashArbError):
    pass


class BuildFailed(FlashArbError):
    pass


class SetupError(FlashArbError):
    """Startup verification failed; the process must stop"""


# =============================================================================
# REVERT PAYLOAD HELPERS
# =============================================================================

def encode_revert_reason(reason: str) -> bytes:
    """Encode a reason the way `revert("...")` does"""
    return ERROR_STRING_SELECTOR + encode(["string"], [reason])


def extract_revert_reason(data: Optional[bytes]) -> str:
    """
    Best-effort human readable reason from a revert payload.
    Short payloads cannot hold an Error(string); anything undecodable
    falls back to the generic reason. Never raises.
    """
    if not data or len(data) < _MIN_REASON_PAYLOAD:
        return SILENT_REVERT_REASON
    try:
        (reason,) = decode(["string"], bytes(data[4:]))
    except Exception:
        return SILENT_REVERT_REASON
    return reason or SILENT_REVERT_REASON


def _selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


# Custom errors of the deployed settlement contract
SETTLEMENT_ERROR_SIGNATURES = (
    "Unauthorized()",
    "WrongAsset()",
    "SlippageExceeded()",
    "InsufficientReserve()",
    "ApprovalFailed()",
)

SETTLEMENT_ERROR_SELECTORS: Dict[bytes, str] = {
    _selector(sig): sig for sig in SETTLEMENT_ERROR_SIGNATURES
}


def decode_settlement_error(data: Optional[bytes]) -> str:
    """Name a revert payload coming back from the settlement contract"""
    if data and len(data) >= 4:
        sig = SETTLEMENT_ERROR_SELECTORS.get(bytes(data[:4]))
        if sig:
            return sig
        if bytes(data[:4]) == ERROR_STRING_SELECTOR:
            return extract_revert_reason(data)
    return SILENT_REVERT_REASON
