# tests/test_executor.py
from types import SimpleNamespace

from eth_utils import keccak
from web3.exceptions import ContractLogicError, TimeExhausted

from conftest import CONTRACT
from flasharb.executor import ExecutionStatus, FlashLoanExecutor

SIGNER = "0x" + "11" * 20
TX_HASH = b"\x12" * 32


class FakeFunction:
    def __init__(self, revert_data=None):
        self.revert_data = revert_data

    def call(self, params=None):
        if self.revert_data is not None:
            raise ContractLogicError("execution reverted", data=self.revert_data)
        return None

    def build_transaction(self, params):
        return dict(params, to=CONTRACT, data="0x")


class FakeChain:
    def __init__(self, revert_data=None, receipt=None, timeout=False):
        self.revert_data = revert_data
        self.receipt = receipt
        self.timeout = timeout
        self.sent = []
        self.gas_price = 10**8
        self.account = SimpleNamespace(from_key=lambda key: SimpleNamespace(
            address=SIGNER,
            sign_transaction=lambda tx: SimpleNamespace(raw_transaction=b"signed"),
        ))

    def contract(self, address, abi):
        fn = FakeFunction(self.revert_data)
        return SimpleNamespace(functions=SimpleNamespace(
            executeFlashLoanWithSwap=lambda amount, params: fn,
            getTotalProfit=lambda: SimpleNamespace(call=lambda: 490),
        ))

    def get_transaction_count(self, address, block):
        return 7

    def send_raw_transaction(self, raw):
        self.sent.append(raw)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout):
        if self.timeout:
            raise TimeExhausted("not mined")
        return self.receipt


def executor(chain):
    return FlashLoanExecutor(SimpleNamespace(eth=chain), CONTRACT, "0x" + "01" * 32, receipt_timeout=1)


def test_successful_submission():
    chain = FakeChain(receipt=SimpleNamespace(status=1, gasUsed=800_000, blockNumber=123))
    result = executor(chain).submit(10**18, b"blob")

    assert result.status == ExecutionStatus.SUCCESS
    assert result.simulation_passed
    assert result.gas_used == 800_000
    assert result.tx_hash == TX_HASH.hex()
    assert chain.sent == [b"signed"]


def test_simulation_revert_is_decoded_and_nothing_sent():
    selector = "0x" + keccak(text="SlippageExceeded()")[:4].hex()
    chain = FakeChain(revert_data=selector)
    result = executor(chain).submit(10**18, b"blob")

    assert result.status == ExecutionStatus.FAILED
    assert "SlippageExceeded()" in result.error
    assert chain.sent == []


def test_reverted_receipt():
    chain = FakeChain(receipt=SimpleNamespace(status=0, gasUsed=300_000, blockNumber=124))
    result = executor(chain).submit(10**18, b"blob")
    assert result.status == ExecutionStatus.REVERTED
    assert result.gas_used == 300_000


def test_receipt_timeout():
    result = executor(FakeChain(timeout=True)).submit(10**18, b"blob")
    assert result.status == ExecutionStatus.TIMEOUT
    assert result.tx_hash == TX_HASH.hex()


def test_total_profit_query():
    assert executor(FakeChain()).get_total_profit() == 490
