# flasharb/quote_client.py
"""
Route Quoting Client (ParaSwap v5)
Asks the aggregator for the best route and expected output of a sell.
No retries here: the monitoring loop owns retry policy.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import requests
from web3 import Web3

from flasharb.config import (
    CHAIN_ID, HTTP_TIMEOUT_SECONDS, MAX_PRICE_IMPACT_BPS,
    PARASWAP_API_URL, PARASWAP_PARTNER,
)
from flasharb.errors import QuoteUnavailable
from flasharb.tokens import PARASWAP_FALLBACK_SPENDER, get_decimals, get_symbol

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """Aggregator quote for selling source_amount of source_asset"""
    source_asset: str
    dest_asset: str
    source_amount: int
    dest_amount: int                    # expected output, base units
    source_value_usd: Optional[str]     # as reported by the aggregator
    dest_value_usd: Optional[str]
    route_hops: Tuple[Dict[str, Any], ...]
    max_price_impact_bps: int
    price_route: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_valid(self) -> bool:
        return len(self.route_hops) > 0


# =============================================================================
# QUOTE CLIENT
# =============================================================================

class QuoteClient:

    def __init__(
        self,
        api_url: str = PARASWAP_API_URL,
        network: int = CHAIN_ID,
        partner: str = PARASWAP_PARTNER,
        max_impact_bps: int = MAX_PRICE_IMPACT_BPS,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_url = api_url.rstrip("/")
        self.network = network
        self.partner = partner
        self.max_impact_bps = max_impact_bps
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_quote(self, source_asset: str, dest_asset: str, source_amount: int) -> Quote:
        """Fetch the best SELL route; raises QuoteUnavailable on any failure"""
        if source_amount <= 0:
            raise QuoteUnavailable(f"Amount must be positive, got {source_amount}")

        params = {
            "srcToken": source_asset,
            "destToken": dest_asset,
            "amount": str(source_amount),
            "srcDecimals": get_decimals(source_asset),
            "destDecimals": get_decimals(dest_asset),
            "network": self.network,
            "side": "SELL",
            "partner": self.partner,
            "maxImpact": self.max_impact_bps,
        }
        logger.debug(f"Fetching price route: {params}")

        try:
            response = self.session.get(f"{self.api_url}/prices", params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise QuoteUnavailable(f"Price request failed: {e}") from e

        if response.status_code != 200:
            raise QuoteUnavailable(f"ParaSwap API error {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise QuoteUnavailable("ParaSwap returned a non-JSON body") from e

        price_route = payload.get("priceRoute") if isinstance(payload, dict) else None
        if not isinstance(price_route, dict):
            raise QuoteUnavailable("Invalid price route data structure")

        best_route = price_route.get("bestRoute") or []
        if not best_route:
            raise QuoteUnavailable("No valid routes found in price route response")

        src_usd = price_route.get("srcUSD")
        dest_usd = price_route.get("destUSD")
        if src_usd is None or dest_usd is None:
            raise QuoteUnavailable("Price route is missing USD valuations")

        try:
            dest_amount = int(price_route["destAmount"])
            quoted_src = int(price_route.get("srcAmount", source_amount))
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteUnavailable(f"Malformed amounts in price route: {e}") from e

        quote = Quote(
            source_asset=Web3.to_checksum_address(source_asset),
            dest_asset=Web3.to_checksum_address(dest_asset),
            source_amount=quoted_src,
            dest_amount=dest_amount,
            source_value_usd=str(src_usd),
            dest_value_usd=str(dest_usd),
            route_hops=tuple(best_route),
            max_price_impact_bps=self.max_impact_bps,
            price_route=price_route,
        )
        logger.info(
            f"Quote {get_symbol(source_asset)} -> {get_symbol(dest_asset)}: "
            f"{quote.source_amount} -> {quote.dest_amount} "
            f"(${quote.source_value_usd} -> ${quote.dest_value_usd}, {len(best_route)} routes)"
        )
        return quote

    def get_spender(self) -> str:
        """Token transfer proxy of the aggregator, or the known fallback"""
        try:
            response = self.session.get(
                f"{self.api_url}/adapters/contracts",
                params={"network": self.network},
                timeout=self.timeout,
            )
            response.raise_for_status()
            spender = response.json().get("TokenTransferProxy")
            if not spender or not Web3.is_address(spender):
                raise ValueError(f"Invalid spender address returned: {spender!r}")
            return Web3.to_checksum_address(spender)
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.error(f"Failed to get ParaSwap spender: {e}")
            return PARASWAP_FALLBACK_SPENDER
