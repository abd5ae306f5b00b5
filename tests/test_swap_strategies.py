import pytest
from eth_abi import decode
from web3 import Web3

from config.constants import ROUTER_ADDRESS, ROUTER_DIRECTIONS, WPOL_ADDRESS, WRAP_DIRECTIONS
from core.exceptions import QuoteError
from services.swap_strategies import (
    RouterSwapStrategy,
    WrapSwapStrategy,
    create_strategy,
    function_selector,
    parse_quote,
)

WALLET = "0x" + "1" * 40
LIFI_QUOTE = {
    'transactionRequest': {'data': '0xdeadbeef', 'gasLimit': '0x30d40'},
    'estimate': {'approvalAddress': "0x" + "2" * 40, 'toAmount': '998000'},
}


def test_parse_quote_reads_route_gas_and_approval():
    quote = parse_quote(LIFI_QUOTE)

    assert quote.route_data == '0xdeadbeef'
    assert quote.gas_limit == 200_000
    assert quote.approval_target == "0x" + "2" * 40
    assert quote.estimated_out == '998000'


def test_parse_quote_rejects_malformed_response():
    with pytest.raises(QuoteError):
        parse_quote({'estimate': {}})


def test_router_call_wraps_route_in_make_public_swap():
    strategy = RouterSwapStrategy()
    call = strategy.build_call(ROUTER_DIRECTIONS[0], 1_000_000, WALLET, parse_quote(LIFI_QUOTE))

    data = Web3.to_bytes(hexstr=call.data)
    assert strategy.requires_quote()
    assert call.to == Web3.to_checksum_address(ROUTER_ADDRESS)
    assert call.value == 0
    assert call.gas_limit == 200_000
    assert data[:4] == function_selector("makePublicSwap(bytes,(bool,bool),bytes,bytes)")

    route, synth_support, permit, token_signature = decode(
        ['bytes', '(bool,bool)', 'bytes', 'bytes'], data[4:])
    assert route == bytes.fromhex('deadbeef')
    assert synth_support == (False, False)
    assert permit == b'' and token_signature == b''


def test_router_call_requires_quote():
    with pytest.raises(QuoteError):
        RouterSwapStrategy().build_call(ROUTER_DIRECTIONS[0], 1, WALLET, None)


def test_wrap_and_unwrap_calls():
    strategy = WrapSwapStrategy()
    wrap, unwrap = WRAP_DIRECTIONS

    deposit = strategy.build_call(wrap, 10 ** 18, WALLET)
    withdraw = strategy.build_call(unwrap, 10 ** 18, WALLET)

    assert not strategy.requires_quote()
    assert deposit.to == withdraw.to == Web3.to_checksum_address(WPOL_ADDRESS)
    assert deposit.value == 10 ** 18
    assert deposit.data == Web3.to_hex(function_selector("deposit()"))
    assert deposit.approval_target is None

    withdraw_data = Web3.to_bytes(hexstr=withdraw.data)
    assert withdraw.value == 0
    assert withdraw_data[:4] == function_selector("withdraw(uint256)")
    assert decode(['uint256'], withdraw_data[4:]) == (10 ** 18,)


def test_wrap_strategy_rejects_router_direction():
    with pytest.raises(ValueError):
        WrapSwapStrategy().build_call(ROUTER_DIRECTIONS[0], 1, WALLET)


def test_strategy_factory():
    assert isinstance(create_strategy("router"), RouterSwapStrategy)
    assert isinstance(create_strategy("wrap"), WrapSwapStrategy)
    with pytest.raises(ValueError):
        create_strategy("bridge")
