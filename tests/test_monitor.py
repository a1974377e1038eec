# tests/test_monitor.py
from types import SimpleNamespace

import pytest

from conftest import CONTRACT, ROUTER, make_quote
from flasharb.config import MonitorSettings
from flasharb.errors import QuoteUnavailable
from flasharb.executor import ExecutionResult, ExecutionStatus
from flasharb.monitor import ArbitrageMonitor, BotMode, verify_setup
from flasharb.settlement_params import SettlementParams, encode_settlement_params
from flasharb.swap_builder import BuiltSwap
from flasharb.tokens import DAI, WETH

ONE_WETH = 10**18


class FakeQuoteClient:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def get_quote(self, source_asset, dest_asset, source_amount):
        self.requests.append((source_asset, dest_asset, source_amount))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeBuilder:
    def __init__(self):
        self.calls = []

    def build(self, quote, slippage_bps, user_address):
        self.calls.append((quote, slippage_bps, user_address))
        params = SettlementParams(ROUTER, b"\x01", quote.dest_amount)
        return BuiltSwap(params=params, blob=encode_settlement_params(params))


class FakeSubmitter:
    def __init__(self, status=ExecutionStatus.SUCCESS):
        self.status = status
        self.calls = []

    def submit(self, principal, params_blob, quote=None):
        self.calls.append((principal, params_blob, quote))
        return ExecutionResult(status=self.status, principal=principal, tx_hash="0xabc")


def settings(*amounts):
    return MonitorSettings(loan_amounts=amounts or ("1",), contract_address=CONTRACT)


def monitor(quotes, mode=BotMode.EXECUTE, amounts=("1",), submitter=None, sleep=None):
    return ArbitrageMonitor(
        settings(*amounts),
        quotes,
        builder=FakeBuilder(),
        submitter=submitter or FakeSubmitter(),
        mode=mode,
        sleep=sleep or (lambda seconds: None),
    )


def test_profitable_quote_is_built_and_submitted():
    quote = make_quote(src_usd="100.00", dest_usd="104.50")
    m = monitor(FakeQuoteClient(quote))

    result = m.process_loan_size("1")

    assert result.status == ExecutionStatus.SUCCESS
    assert m.quote_client.requests == [(WETH, DAI, ONE_WETH // 2)]
    assert m.builder.calls == [(quote, 50, CONTRACT)]
    principal, blob, submitted_quote = m.submitter.calls[0]
    assert principal == ONE_WETH
    assert submitted_quote is quote
    assert m.stats.successes == 1


def test_unprofitable_quote_is_skipped(caplog):
    m = monitor(FakeQuoteClient(make_quote(src_usd="96.00", dest_usd="98.50")))

    with caplog.at_level("INFO"):
        assert m.process_loan_size("1") is None

    assert "Skipping - below profit threshold" in caplog.text
    assert m.builder.calls == []
    assert m.submitter.calls == []
    assert m.stats.skips == 1


def test_scan_mode_never_builds():
    m = monitor(FakeQuoteClient(make_quote()), mode=BotMode.SCAN_ONLY)
    assert m.process_loan_size("1") is None
    assert m.builder.calls == []


def test_failing_loan_size_does_not_stop_the_cycle():
    quotes = FakeQuoteClient(QuoteUnavailable("No routes"), make_quote())
    m = monitor(quotes, amounts=("1", "2"))

    assert m.run_cycle() == 1
    assert m.stats.errors == 1
    assert m.submitter.calls[0][0] == 2 * ONE_WETH


def test_failed_submission_is_counted():
    m = monitor(FakeQuoteClient(make_quote()), submitter=FakeSubmitter(ExecutionStatus.REVERTED))
    result = m.process_loan_size("1")
    assert result.status == ExecutionStatus.REVERTED
    assert m.stats.failures == 1


def test_run_sleeps_between_cycles():
    naps = []
    m = monitor(FakeQuoteClient(make_quote(dest_usd="1"), make_quote(dest_usd="1")), sleep=naps.append)

    m.run(max_cycles=2)

    assert m.stats.cycles == 2
    assert naps == [5.0]
    assert m.running is False


def test_non_scan_mode_needs_submitter():
    with pytest.raises(ValueError):
        ArbitrageMonitor(settings(), FakeQuoteClient(), mode=BotMode.EXECUTE)


def fake_w3(chain_id=42161, balance=10**17, balance_error=None):
    def get_balance(address):
        if balance_error:
            raise balance_error
        return balance
    return SimpleNamespace(eth=SimpleNamespace(chain_id=chain_id, get_balance=get_balance))


def test_verify_setup_passes():
    assert verify_setup(fake_w3(), "0x" + "11" * 20) is True


def test_verify_setup_wrong_chain():
    assert verify_setup(fake_w3(chain_id=1), "0x" + "11" * 20) is False


def test_verify_setup_rpc_failure():
    assert verify_setup(fake_w3(balance_error=ConnectionError("refused")), "0x" + "11" * 20) is False
