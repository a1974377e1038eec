# tests/test_allowance.py
from types import SimpleNamespace

import pytest

from conftest import CONTRACT, ROUTER
from flasharb.allowance import AllowanceManager, Web3TokenGateway
from flasharb.chain import TokenLedger
from flasharb.errors import ApprovalFailed, SettlementError, SetupError
from flasharb.tokens import MAX_UINT256, USDT, WETH


def test_grants_max_once():
    tokens = TokenLedger()
    manager = AllowanceManager(tokens, CONTRACT)

    assert manager.ensure(WETH, ROUTER, 500) is True
    assert tokens.allowance(WETH, CONTRACT, ROUTER) == MAX_UINT256
    assert manager.ensure(WETH, ROUTER, 500) is False
    assert tokens.allowance(WETH, CONTRACT, ROUTER) == MAX_UINT256


def test_sufficient_allowance_is_left_alone():
    tokens = TokenLedger()
    tokens.approve(WETH, CONTRACT, ROUTER, 1000)
    manager = AllowanceManager(tokens, CONTRACT)

    assert manager.ensure(WETH, ROUTER, 500) is False
    assert tokens.allowance(WETH, CONTRACT, ROUTER) == 1000


def test_ensure_all_counts_grants():
    tokens = TokenLedger()
    other = "0x" + "55" * 20
    tokens.approve(WETH, CONTRACT, other, MAX_UINT256)

    assert AllowanceManager(tokens, CONTRACT).ensure_all(WETH, (ROUTER, other), 1) == 1


def test_zero_first_token_raises_approval_failed():
    tokens = TokenLedger()
    tokens.approve(USDT, CONTRACT, ROUTER, 5)

    with pytest.raises(ApprovalFailed):
        AllowanceManager(tokens, CONTRACT).ensure(USDT, ROUTER, 10)
    assert tokens.allowance(USDT, CONTRACT, ROUTER) == 5


def wallet_w3(receipt_status):
    approve = SimpleNamespace(build_transaction=lambda params: dict(params, to=WETH, data="0x"))
    return SimpleNamespace(eth=SimpleNamespace(
        account=SimpleNamespace(from_key=lambda key: SimpleNamespace(
            address=CONTRACT,
            sign_transaction=lambda tx: SimpleNamespace(raw_transaction=b"signed"),
        )),
        contract=lambda address, abi: SimpleNamespace(functions=SimpleNamespace(
            approve=lambda spender, amount: approve,
        )),
        get_transaction_count=lambda address, block: 3,
        gas_price=10**8,
        send_raw_transaction=lambda raw: b"\x12" * 32,
        wait_for_transaction_receipt=lambda tx_hash, timeout: SimpleNamespace(status=receipt_status, gasUsed=46_000),
    ))


def test_reverted_wallet_approval_is_a_setup_error():
    gateway = Web3TokenGateway(wallet_w3(receipt_status=0), "0x" + "01" * 32)

    with pytest.raises(SetupError) as exc:
        gateway.approve(WETH, CONTRACT, ROUTER, MAX_UINT256)
    assert not isinstance(exc.value, SettlementError)


def test_wallet_approval_confirmed():
    gateway = Web3TokenGateway(wallet_w3(receipt_status=1), "0x" + "01" * 32)
    gateway.approve(WETH, CONTRACT, ROUTER, MAX_UINT256)
