# tests/test_paper.py
from conftest import ROUTER, make_quote
from flasharb.config import MonitorSettings
from flasharb.executor import ExecutionStatus
from flasharb.paper import PaperSubmitter
from flasharb.settlement_params import SettlementParams, encode_settlement_params

ONE_WETH = 10**18


def paper_blob(min_output):
    return encode_settlement_params(SettlementParams(ROUTER, b"\x01\x02", min_output))


def test_paper_settlement_until_reserve_runs_out():
    paper = PaperSubmitter(MonitorSettings(), pool_liquidity="1000", reserve="0.6")
    quote = make_quote(source_amount=ONE_WETH // 2, dest_amount=1250 * 10**18)

    first = paper.submit(ONE_WETH, paper_blob(1240 * 10**18), quote)

    assert first.status == ExecutionStatus.SUCCESS
    assert first.received == 1250 * 10**18
    assert paper.get_total_profit() == 1250 * 10**18
    # 0.6 + 1 - 0.5 - 1.0005
    assert paper.reserve_balance() == 995 * 10**14

    second = paper.submit(ONE_WETH, paper_blob(1240 * 10**18), quote)

    assert second.status == ExecutionStatus.REVERTED
    assert "Insufficient reserve" in second.error
    assert paper.get_total_profit() == 1250 * 10**18
    assert paper.reserve_balance() == 995 * 10**14


def test_paper_settlement_rejects_slippage():
    paper = PaperSubmitter(MonitorSettings())
    quote = make_quote(source_amount=ONE_WETH // 2, dest_amount=1000)

    result = paper.submit(ONE_WETH, paper_blob(1001), quote)

    assert result.status == ExecutionStatus.REVERTED
    assert "Slippage" in result.error
    assert paper.get_total_profit() == 0
