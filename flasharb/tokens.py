# flasharb/tokens.py
"""
Token & Protocol Registry for Arbitrum
Addresses of the assets and collaborators the flash arbitrage touches
"""

from web3 import Web3
from decimal import Decimal
from dataclasses import dataclass
from typing import Dict, Optional

# =============================================================================
# TOKEN ADDRESSES (Arbitrum One - All Checksummed)
# =============================================================================

WETH = Web3.to_checksum_address("0x82aF49447D8a07e3bd95BD0d56f35241523fBab1")
DAI = Web3.to_checksum_address("0xda10009cbd5d07dd0cecc66161fc93d7c9000da1")
USDC = Web3.to_checksum_address("0xaf88d065e77c8cC2239327C5EDb3A432268e5831")
USDT = Web3.to_checksum_address("0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9")

# Largest representable ERC20 allowance
MAX_UINT256 = 2**256 - 1


# =============================================================================
# TOKEN METADATA
# =============================================================================

@dataclass
class TokenInfo:
    address: str
    symbol: str
    decimals: int
    # USDT-style tokens revert when raising a non-zero allowance
    requires_zero_allowance: bool = False


TOKENS: Dict[str, TokenInfo] = {
    WETH: TokenInfo(WETH, "WETH", 18),
    DAI: TokenInfo(DAI, "DAI", 18),
    USDC: TokenInfo(USDC, "USDC", 6),
    USDT: TokenInfo(USDT, "USDT", 6, requires_zero_allowance=True),
}

# =============================================================================
# PROTOCOL ADDRESSES
# =============================================================================

AAVE_V3_POOL = Web3.to_checksum_address("0x794a61358D6845594F94dc1DB02A252b5b4814aD")
AAVE_FLASH_FEE_BPS = 5  # 0.05%

# ParaSwap v5 Augustus swapper, used when the spender lookup fails
PARASWAP_FALLBACK_SPENDER = Web3.to_checksum_address("0xdef171fe48cf0115b1d80b88dc8eab59176fee57")
# ParaSwap v5 TokenTransferProxy (pulls the funds on behalf of Augustus)
PARASWAP_TRANSFER_PROXY = Web3.to_checksum_address("0x216B4B4Ba9F3e719726886d34a177484278Bfcae")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_token_info(address: str) -> Optional[TokenInfo]:
    """Get token info by address (checksummed or not)"""
    addr = Web3.to_checksum_address(address)
    return TOKENS.get(addr)


def get_decimals(address: str) -> int:
    """Get token decimals"""
    info = get_token_info(address)
    return info.decimals if info else 18


def get_symbol(address: str) -> str:
    """Get token symbol"""
    info = get_token_info(address)
    return info.symbol if info else "UNKNOWN"


def requires_zero_allowance(address: str) -> bool:
    info = get_token_info(address)
    return info.requires_zero_allowance if info else False


def to_base_units(amount_human, token: str) -> int:
    """Convert a human amount ("1.5") into integer base units"""
    decimals = get_decimals(token)
    return int(Decimal(str(amount_human)) * Decimal(10 ** decimals))


def from_base_units(amount: int, token: str) -> Decimal:
    """Convert integer base units into a human Decimal"""
    decimals = get_decimals(token)
    return Decimal(amount) / Decimal(10 ** decimals)
