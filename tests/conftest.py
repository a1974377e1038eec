# tests/conftest.py
import pytest
import requests

from flasharb.chain import ExecutionHost
from flasharb.config import SettlementConfig
from flasharb.errors import Revert
from flasharb.lending_pool import SimulatedLendingPool
from flasharb.quote_client import Quote
from flasharb.settlement import FlashLoanArbitrage
from flasharb.tokens import AAVE_V3_POOL, DAI, WETH

OWNER = "0x" + "11" * 20
OTHER = "0x" + "22" * 20
CONTRACT = "0x" + "33" * 20
ROUTER = "0x" + "44" * 20


class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json
        self.text = "" if payload is None else str(payload)

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records requests and replays canned responses in order"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class ScriptedRouter:
    """Pulls `pull` WETH from the caller and pays `pay` DAI, or reverts"""

    def __init__(self, address, pull, pay, revert_with=None):
        self.address = address
        self.pull = pull
        self.pay = pay
        self.revert_with = revert_with
        self.calls = 0

    def handle_call(self, host, sender, data):
        self.calls += 1
        host.tokens.transfer_from(WETH, self.address, sender, self.address, self.pull)
        host.tokens.mint(DAI, sender, self.pay)
        if self.revert_with is not None:
            raise Revert(self.revert_with)
        return b""


def make_quote(src_usd="100.00", dest_usd="104.50", source_amount=500, dest_amount=490, hops=None):
    return Quote(
        source_asset=WETH,
        dest_asset=DAI,
        source_amount=source_amount,
        dest_amount=dest_amount,
        source_value_usd=src_usd,
        dest_value_usd=dest_usd,
        route_hops=tuple(hops if hops is not None else [{"percent": 100, "swaps": []}]),
        max_price_impact_bps=50,
        price_route={"srcAmount": str(source_amount), "destAmount": str(dest_amount)},
    )


class Market:
    """A settlement contract wired to a pool with 10_000 WETH of liquidity"""

    def __init__(self, reserve, premium_bps=90, tokens=None):
        self.host = ExecutionHost(tokens)
        self.pool = SimulatedLendingPool(self.host, AAVE_V3_POOL, premium_bps=premium_bps)
        self.contract = FlashLoanArbitrage(
            self.host, address=CONTRACT, owner=OWNER, pool=self.pool, config=SettlementConfig(),
        )
        self.host.tokens.mint(WETH, AAVE_V3_POOL, 10_000)
        self.host.tokens.mint(WETH, CONTRACT, reserve)

    def deploy_router(self, pull=500, pay=490, revert_with=None):
        router = ScriptedRouter(ROUTER, pull, pay, revert_with)
        self.host.deploy(ROUTER, router)
        return router

    def balance(self, token, holder):
        return self.host.tokens.balance_of(token, holder)


@pytest.fixture
def market():
    # principal 1000 -> premium 9, swap 500; 509 reserve exactly covers repayment
    return Market(reserve=509)
