# flasharb/swap_builder.py
"""
Swap Parameter Builder
Turns an accepted quote into router calldata (ParaSwap /transactions) and the
settlement parameter blob handed to the flash loan contract.
"""

import time
import logging
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from web3 import Web3

from flasharb.config import (
    CHAIN_ID, HTTP_TIMEOUT_SECONDS, PARASWAP_API_URL, PARASWAP_PARTNER,
    SWAP_DEADLINE_SECONDS,
)
from flasharb.errors import BuildFailed
from flasharb.quote_client import Quote
from flasharb.settlement_params import SettlementParams, encode_settlement_params
from flasharb.tokens import get_decimals

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10000


# =============================================================================
# SLIPPAGE MATH
# =============================================================================

def slippage_percent_to_bps(percent) -> int:
    """0.5 (%) -> 50 bps, rounding half-up"""
    bps = (Decimal(str(percent)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise ValueError(f"Slippage {percent}% is out of range")
    return int(bps)


def min_acceptable_output(expected_output: int, slippage_bps: int) -> int:
    """Floor of expected * (10000 - bps) / 10000; never above expected"""
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps must be within 0..{BPS_DENOMINATOR}, got {slippage_bps}")
    if expected_output < 0:
        raise ValueError(f"expected_output must be non-negative, got {expected_output}")
    return expected_output * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


# =============================================================================
# BUILDER
# =============================================================================

@dataclass(frozen=True)
class BuiltSwap:
    params: SettlementParams
    blob: bytes
    tx_data: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


class SwapBuilder:

    def __init__(
        self,
        api_url: str = PARASWAP_API_URL,
        network: int = CHAIN_ID,
        partner: str = PARASWAP_PARTNER,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        deadline_seconds: int = SWAP_DEADLINE_SECONDS,
    ):
        self.api_url = api_url.rstrip("/")
        self.network = network
        self.partner = partner
        self.session = session or requests.Session()
        self.timeout = timeout
        self.deadline_seconds = deadline_seconds

    def build(self, quote: Quote, slippage_bps: int, user_address: str) -> BuiltSwap:
        """
        Ask the aggregator for calldata that executes exactly the quoted route
        on behalf of `user_address` (the settlement contract), then pack it
        with the minimum acceptable output.

        Raises BuildFailed when the service does not return usable calldata.
        """
        if not quote.is_valid:
            raise BuildFailed("Quote has no route to build")

        min_output = min_acceptable_output(quote.dest_amount, slippage_bps)

        body = {
            "srcToken": quote.source_asset,
            "destToken": quote.dest_asset,
            "srcAmount": str(quote.source_amount),
            "slippage": slippage_bps,
            "priceRoute": quote.price_route,
            "userAddress": Web3.to_checksum_address(user_address),
            "partner": self.partner,
            "deadline": int(time.time()) + self.deadline_seconds,
            "srcDecimals": get_decimals(quote.source_asset),
            "destDecimals": get_decimals(quote.dest_asset),
        }

        try:
            response = self.session.post(
                f"{self.api_url}/transactions/{self.network}",
                params={"ignoreChecks": "true"},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BuildFailed(f"Transaction build request failed: {e}") from e

        if response.status_code != 200:
            raise BuildFailed(f"ParaSwap build error {response.status_code}: {response.text[:200]}")

        try:
            tx_data = response.json()
        except ValueError as e:
            raise BuildFailed("ParaSwap returned a non-JSON body") from e

        if not isinstance(tx_data, dict) or not tx_data.get("to") or not tx_data.get("data"):
            raise BuildFailed("Invalid transaction data from ParaSwap")

        try:
            params = SettlementParams(
                router_address=Web3.to_checksum_address(tx_data["to"]),
                swap_call_data=bytes(Web3.to_bytes(hexstr=tx_data["data"])),
                min_acceptable_output=min_output,
            )
        except (TypeError, ValueError) as e:
            raise BuildFailed(f"Malformed transaction data: {e}") from e

        blob = encode_settlement_params(params)
        logger.info(
            f"Built swap via {params.router_address}: {len(params.swap_call_data)} bytes calldata, "
            f"min output {min_output} ({slippage_bps} bps slippage)"
        )
        return BuiltSwap(params=params, blob=blob, tx_data=tx_data)
