from types import SimpleNamespace

import pytest
from web3 import Web3

from core.chain_client import ChainClient
from core.gas_monitor import GasMonitor
from core.models import FeeEstimate

GWEI = Web3.to_wei(1, "gwei")


class FakeChain:
    def __init__(self, estimate=None, error=None):
        self.estimate = estimate
        self.error = error

    async def get_fee_estimate(self):
        if self.error:
            raise self.error
        return self.estimate


@pytest.mark.asyncio
async def test_eip1559_when_both_fee_figures_present():
    chain = FakeChain(FeeEstimate(gas_price=40 * GWEI, max_fee_per_gas=90 * GWEI,
                                  max_priority_fee_per_gas=30 * GWEI))

    fees = await GasMonitor().select_fees(chain)

    assert fees.tx_type == 2
    assert fees.to_tx_fields() == {'type': 2, 'maxFeePerGas': 90 * GWEI, 'maxPriorityFeePerGas': 30 * GWEI}
    assert fees.estimate_cost(100_000) == 100_000 * 90 * GWEI


@pytest.mark.asyncio
async def test_legacy_when_priority_fee_missing():
    chain = FakeChain(FeeEstimate(gas_price=40 * GWEI, max_fee_per_gas=90 * GWEI))

    fees = await GasMonitor().select_fees(chain)

    assert fees.tx_type == 0
    assert fees.to_tx_fields() == {'gasPrice': 40 * GWEI}


@pytest.mark.asyncio
async def test_one_gwei_when_nothing_known():
    fees = await GasMonitor().select_fees(FakeChain(FeeEstimate()))

    assert fees.tx_type == 0
    assert fees.gas_price == GWEI


@pytest.mark.asyncio
async def test_rpc_failure_degrades_to_one_gwei():
    fees = await GasMonitor().select_fees(FakeChain(error=ConnectionError("timeout")))

    assert fees.tx_type == 0
    assert fees.price_per_gas == GWEI


class FakeEth:
    def __init__(self, gas_price=40 * GWEI, base_fee=30 * GWEI, priority_error=None):
        self._gas_price = gas_price
        self._base_fee = base_fee
        self._priority_error = priority_error

    @property
    def gas_price(self):
        return self._gas_price

    @property
    def max_priority_fee(self):
        if self._priority_error:
            raise self._priority_error
        return 2 * GWEI

    def get_block(self, _block_identifier):
        return {'number': 1, 'baseFeePerGas': self._base_fee}


def make_client(eth):
    return ChainClient(SimpleNamespace(eth=eth), chain_id=137)


@pytest.mark.asyncio
async def test_chain_fees_use_base_fee_and_priority():
    fees = await GasMonitor().select_fees(make_client(FakeEth()))

    assert fees.tx_type == 2
    assert fees.max_priority_fee_per_gas == 2 * GWEI
    assert fees.max_fee_per_gas == 62 * GWEI


@pytest.mark.asyncio
async def test_unsupported_priority_fee_keeps_legacy_gas_price():
    eth = FakeEth(priority_error=ValueError("method eth_maxPriorityFeePerGas not supported"))

    fees = await GasMonitor().select_fees(make_client(eth))

    assert fees.tx_type == 0
    assert fees.gas_price == 40 * GWEI
