# flasharb/profit_evaluator.py

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from flasharb.quote_client import Quote

logger = logging.getLogger(__name__)

# Returned instead of raising when a quote cannot be valued
UNPROFITABLE_SENTINEL = Decimal("-999")


@dataclass
class ProfitResult:
    ok: bool
    profit_usd: Decimal
    threshold_usd: Decimal
    reason: str = ""


def estimate_profit_usd(quote: Quote) -> Decimal:
    """
    dest_value_usd - source_value_usd, as reported by the aggregator.
    Gas is not included. Never raises.
    """
    try:
        src_usd = Decimal(str(quote.source_value_usd))
        dest_usd = Decimal(str(quote.dest_value_usd))
    except (InvalidOperation, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Error calculating profit: {e}")
        return UNPROFITABLE_SENTINEL

    if not (src_usd.is_finite() and dest_usd.is_finite()):
        logger.error(f"Non-finite USD values in quote: {quote.source_value_usd} / {quote.dest_value_usd}")
        return UNPROFITABLE_SENTINEL

    return dest_usd - src_usd


def profit_guard(quote: Quote, min_profit_usd: Decimal) -> ProfitResult:
    profit = estimate_profit_usd(quote)

    if profit < min_profit_usd:
        return ProfitResult(
            ok=False,
            profit_usd=profit,
            threshold_usd=min_profit_usd,
            reason=f"Net profit ${profit:.2f} < ${min_profit_usd:.2f}",
        )

    return ProfitResult(
        ok=True,
        profit_usd=profit,
        threshold_usd=min_profit_usd,
    )
