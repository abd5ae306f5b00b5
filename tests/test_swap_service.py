from decimal import Decimal
from types import SimpleNamespace

import pytest
from web3 import Web3

from config.constants import MAX_UINT256, ROUTER_DIRECTIONS, WRAP_DIRECTIONS
from core.chain_client import is_native
from core.confirmation_monitor import ConfirmationMonitor
from core.exceptions import (
    ApprovalError,
    InsufficientBalanceError,
    InsufficientGasError,
    QuoteError,
    ReceiptError,
    RevertedError,
    StoppedError,
    SubmissionError,
)
from core.gas_monitor import GasMonitor
from core.lifecycle import LifecycleController
from core.models import FeeEstimate, Receipt
from core.nonce_tracker import NonceTracker
from services.swap_service import SwapService
from services.swap_strategies import RouterSwapStrategy, WrapSwapStrategy

GWEI = Web3.to_wei(1, "gwei")
APPROVE_HASH = "0x" + "a" * 64
SWAP_HASH = "0x" + "B" * 64
SPENDER = "0x" + "2" * 40
USDC_TO_USDT = ROUTER_DIRECTIONS[0]
POL_TO_WPOL = WRAP_DIRECTIONS[0]


class FakeChain:
    def __init__(self, token_balance=10_000_000, native_balance=Web3.to_wei(1, "ether"), allowance=0,
                 swap_status=1, approve_status=1, submit_error=None):
        self.chain_id = 137
        self.token_balance = token_balance
        self.native_balance = native_balance
        self.allowance = allowance
        self.swap_status = swap_status
        self.approve_status = approve_status
        self.submit_error = submit_error
        self.submitted = []
        self.approvals = []
        self.estimates = []

    async def get_token_balance(self, token_address, _address):
        return self.native_balance if is_native(token_address) else self.token_balance

    async def get_balance(self, _address):
        return self.native_balance

    async def get_pending_nonce(self, _address):
        return 5

    async def get_fee_estimate(self):
        return FeeEstimate(gas_price=30 * GWEI, max_fee_per_gas=60 * GWEI, max_priority_fee_per_gas=30 * GWEI)

    async def estimate_gas(self, tx):
        self.estimates.append(tx)
        return 50_000

    async def get_allowance(self, _token, _owner, _spender):
        return self.allowance

    async def submit_approval(self, _account, token, spender, amount, fee_params, nonce):
        self.approvals.append({'token': token, 'spender': spender, 'amount': amount, 'nonce': nonce})
        return APPROVE_HASH

    async def submit_transaction(self, _account, tx):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append(tx)
        return SWAP_HASH

    async def get_receipt(self, tx_hash):
        status = self.swap_status if tx_hash == SWAP_HASH else self.approve_status
        return Receipt(tx_hash=tx_hash, status=status, block_number=100, gas_used=21_000,
                       effective_gas_price=50 * GWEI)


class FakeApi:
    def __init__(self, quote_error=None, report_error=None):
        self.quote_error = quote_error
        self.report_error = report_error
        self.quotes = []
        self.reports = []

    async def get_quote(self, from_token, to_token, amount_raw, wallet_address, chain_id, proxy=None):
        self.quotes.append((from_token, to_token, amount_raw, wallet_address, chain_id))
        if self.quote_error:
            raise self.quote_error
        return {
            'transactionRequest': {'data': '0x1234abcd', 'gasLimit': '0x30d40'},
            'estimate': {'approvalAddress': SPENDER, 'toAmount': '5990000'},
        }

    async def report_transaction(self, report, proxy=None):
        self.reports.append(report)
        if self.report_error:
            raise self.report_error
        return {'pointsAmount': 10}


def make_wallet():
    address = Web3.to_checksum_address("0x" + "1" * 40)
    return SimpleNamespace(address=address, api_address=address.lower(),
                           account=SimpleNamespace(address=address))


def make_service(chain, api, strategy=None):
    lifecycle = LifecycleController()
    nonce_tracker = NonceTracker(lifecycle)
    service = SwapService(
        strategy=strategy or RouterSwapStrategy(),
        chain_factory=lambda _proxy: chain,
        api=api,
        nonce_tracker=nonce_tracker,
        gas_monitor=GasMonitor(),
        confirmation_monitor=ConfirmationMonitor(lifecycle, poll_interval=0.01),
        lifecycle=lifecycle,
    )
    return service, nonce_tracker


@pytest.mark.asyncio
async def test_insufficient_balance_submits_nothing():
    chain, api = FakeChain(token_balance=5_000_000), FakeApi()
    service, _ = make_service(chain, api)

    with pytest.raises(InsufficientBalanceError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("6.0"))

    assert chain.submitted == []
    assert chain.approvals == []
    assert api.quotes == []


@pytest.mark.asyncio
async def test_router_swap_approves_submits_and_reports():
    chain, api = FakeChain(allowance=0), FakeApi()
    service, _ = make_service(chain, api)
    wallet = make_wallet()

    tx_hash = await service.perform_swap(wallet, USDC_TO_USDT, Decimal("1.05"))

    assert tx_hash == SWAP_HASH
    assert api.quotes[0][2] == 1_050_000
    assert api.quotes[0][3] == wallet.api_address

    assert chain.approvals == [{'token': USDC_TO_USDT.token_in, 'spender': SPENDER,
                                'amount': MAX_UINT256, 'nonce': 5}]

    tx = chain.submitted[0]
    assert tx['nonce'] == 6
    assert tx['gas'] == 200_000
    assert tx['type'] == 2
    assert tx['value'] == 0
    assert tx['data'].startswith(Web3.to_hex(Web3.keccak(text=RouterSwapStrategy.MAKE_PUBLIC_SWAP)[:4]))

    report = api.reports[0]
    assert report['hash'] == SWAP_HASH.lower()
    assert report['blockchainId'] == 137
    assert report['type'] == 0
    assert report['walletAddress'] == wallet.api_address
    assert report['fromTokenAddress'] == USDC_TO_USDT.token_in.lower()
    assert report['toTokenSymbol'] == "USDT"
    assert report['fromAmount'] == "1050000"
    assert report['toAmount'] == "5990000"
    assert report['gasFeeTokenSymbol'] == "POL"
    assert report['gasFeeAmount'] == str(21_000 * 50 * GWEI)


@pytest.mark.asyncio
async def test_sufficient_allowance_skips_approval():
    chain, api = FakeChain(allowance=MAX_UINT256), FakeApi()
    service, _ = make_service(chain, api)

    await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1"))

    assert chain.approvals == []
    assert chain.submitted[0]['nonce'] == 5


@pytest.mark.asyncio
async def test_reverted_approval_aborts_swap():
    chain, api = FakeChain(approve_status=0), FakeApi()
    service, _ = make_service(chain, api)

    with pytest.raises(ApprovalError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1"))
    assert chain.submitted == []


@pytest.mark.asyncio
async def test_quote_failure_has_no_fallback():
    chain, api = FakeChain(), FakeApi(quote_error=ConnectionError("quote api down"))
    service, _ = make_service(chain, api)

    with pytest.raises(QuoteError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1"))
    assert chain.submitted == []


@pytest.mark.asyncio
async def test_insufficient_gas_budget():
    chain, api = FakeChain(allowance=MAX_UINT256, native_balance=Web3.to_wei(0.001, "ether")), FakeApi()
    service, _ = make_service(chain, api)

    with pytest.raises(InsufficientGasError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1"))
    assert chain.submitted == []


@pytest.mark.asyncio
async def test_nonce_failure_resets_tracker():
    chain = FakeChain(allowance=MAX_UINT256, submit_error=ValueError("nonce too low"))
    service, nonce_tracker = make_service(chain, FakeApi())
    wallet = make_wallet()

    with pytest.raises(SubmissionError) as exc_info:
        await service.perform_swap(wallet, USDC_TO_USDT, Decimal("1"))

    assert exc_info.value.nonce_related is True
    assert nonce_tracker.last_nonce(137, wallet.address) is None


@pytest.mark.asyncio
async def test_other_submission_failure_keeps_nonce_record():
    chain = FakeChain(allowance=MAX_UINT256, submit_error=ValueError("insufficient funds"))
    service, nonce_tracker = make_service(chain, FakeApi())
    wallet = make_wallet()

    with pytest.raises(SubmissionError) as exc_info:
        await service.perform_swap(wallet, USDC_TO_USDT, Decimal("1"))

    assert exc_info.value.nonce_related is False
    assert nonce_tracker.last_nonce(137, wallet.address) == 5


@pytest.mark.asyncio
async def test_reverted_swap_is_not_reported():
    chain, api = FakeChain(allowance=MAX_UINT256, swap_status=0), FakeApi()
    service, _ = make_service(chain, api)

    with pytest.raises(RevertedError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1"))
    assert api.reports == []


@pytest.mark.asyncio
async def test_report_failure_does_not_fail_swap():
    chain, api = FakeChain(allowance=MAX_UINT256), FakeApi(report_error=RuntimeError("500"))
    service, _ = make_service(chain, api)

    assert await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1")) == SWAP_HASH
    assert len(api.reports) == 1


@pytest.mark.asyncio
async def test_wrap_uses_estimate_and_sends_value():
    chain, api = FakeChain(), FakeApi()
    service, _ = make_service(chain, api, strategy=WrapSwapStrategy())

    await service.perform_swap(make_wallet(), POL_TO_WPOL, Decimal("0.5"))

    amount_raw = Web3.to_wei(0.5, "ether")
    tx = chain.submitted[0]
    assert api.quotes == []
    assert chain.approvals == []
    assert tx['value'] == amount_raw
    assert tx['gas'] == 60_000
    assert api.reports[0]['type'] == 1
    assert api.reports[0]['toAmount'] == str(amount_raw)


@pytest.mark.asyncio
async def test_wrap_budget_includes_call_value():
    # Хватает на сумму, но не на сумму + газ
    chain = FakeChain(native_balance=Web3.to_wei(0.5, "ether"))
    service, _ = make_service(chain, FakeApi(), strategy=WrapSwapStrategy())

    with pytest.raises(InsufficientGasError):
        await service.perform_swap(make_wallet(), POL_TO_WPOL, Decimal("0.5"))


@pytest.mark.asyncio
async def test_stop_request_prevents_new_swap():
    chain, api = FakeChain(), FakeApi()
    service, _ = make_service(chain, api)
    service.lifecycle._stop_event.set()

    with pytest.raises(StoppedError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1.0"))

    assert api.quotes == []
    assert chain.submitted == []


class MalformedApprovalReceiptChain(FakeChain):
    async def get_receipt(self, tx_hash):
        if tx_hash == APPROVE_HASH:
            raise ReceiptError("receipt has no gasUsed")
        return await super().get_receipt(tx_hash)


@pytest.mark.asyncio
async def test_malformed_approval_receipt_is_an_approval_error():
    chain, api = MalformedApprovalReceiptChain(), FakeApi()
    service, _ = make_service(chain, api)

    with pytest.raises(ApprovalError):
        await service.perform_swap(make_wallet(), USDC_TO_USDT, Decimal("1.0"))

    assert len(chain.approvals) == 1
    assert chain.submitted == []
