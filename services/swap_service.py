from decimal import Decimal
from typing import Callable, Optional

from config.constants import (
    CONFIRMATION_TIMEOUT,
    GAS_LIMIT_BUFFER,
    MAX_UINT256,
    NATIVE_SYMBOL,
    NATIVE_TOKEN_ADDRESS,
)
from core.chain_client import is_native
from core.exceptions import (
    ApprovalError,
    ConfirmationTimeoutError,
    InsufficientBalanceError,
    InsufficientGasError,
    QuoteError,
    ReceiptError,
    RevertedError,
    StoppedError,
    SubmissionError,
    SwapError,
)
from core.models import FeeParams, Receipt, SwapCall, SwapDirection, SwapQuote
from core.wallet_manager import to_raw, to_units
from services.swap_strategies import parse_quote
from utils.logger import setup_logger, short_address, short_hash


def is_nonce_error(error: Exception) -> bool:
    return "nonce" in str(error).lower()


class SwapService:
    """
    Один своп от проверки баланса до отчета в Tea-Fi.

    Шаги строго последовательны: баланс, котировка, calldata, комиссия,
    approve, бюджет газа, отправка, подтверждение, отчет.
    """

    def __init__(self, strategy, chain_factory: Callable, api, nonce_tracker, gas_monitor,
                 confirmation_monitor, lifecycle, logger=None):
        self.strategy = strategy
        self.chain_factory = chain_factory
        self.api = api
        self.nonce_tracker = nonce_tracker
        self.gas_monitor = gas_monitor
        self.confirmation_monitor = confirmation_monitor
        self.lifecycle = lifecycle
        self.logger = logger or setup_logger("SwapService")

    @property
    def directions(self):
        return self.strategy.directions

    async def perform_swap(self, wallet, direction: SwapDirection, amount: Decimal,
                           proxy: Optional[str] = None) -> str:
        label = f"{short_address(wallet.address)} {direction}"
        step = "chain"

        try:
            self.lifecycle.ensure_not_stopping(f"Swap {direction}")
            chain = self.chain_factory(proxy)
            amount_raw = to_raw(amount, direction.decimals)

            # ✅ 1. БАЛАНС ИСХОДНОГО ТОКЕНА
            step = "balance"
            balance_raw = await chain.get_token_balance(direction.token_in, wallet.address)
            if balance_raw < amount_raw:
                raise InsufficientBalanceError(
                    f"Insufficient {direction.from_symbol} balance: "
                    f"{to_units(balance_raw, direction.decimals)} < {amount}")

            # ✅ 2. КОТИРОВКА (только для роутера)
            step = "quote"
            quote = None
            if self.strategy.requires_quote():
                quote = await self._fetch_quote(chain, wallet, direction, amount_raw, proxy)

            step = "calldata"
            call = self.strategy.build_call(direction, amount_raw, wallet.address, quote)

            step = "fees"
            fees = await self.gas_monitor.select_fees(chain)

            # ✅ 3. APPROVE ДЛЯ ERC-20
            step = "approval"
            if not is_native(direction.token_in) and call.approval_target:
                await self._ensure_allowance(chain, wallet, direction.token_in, call.approval_target,
                                             amount_raw, fees)

            step = "gas budget"
            gas_limit = await self._resolve_gas_limit(chain, wallet, call)
            native_balance = await chain.get_balance(wallet.address)
            required = fees.estimate_cost(gas_limit) + call.value
            if native_balance < required:
                raise InsufficientGasError(
                    f"Insufficient {NATIVE_SYMBOL} balance for gas: "
                    f"{to_units(native_balance, 18)} < {to_units(required, 18)}")

            # ✅ 4. ОТПРАВКА
            step = "submit"
            tx_hash = await self._submit(chain, wallet, call, gas_limit, fees)
            self.logger.info(f"📤 Swap transaction sent: {short_hash(tx_hash)}")

            step = "confirmation"
            receipt = await self.confirmation_monitor.await_confirmation(chain, tx_hash, CONFIRMATION_TIMEOUT)
            if receipt.status == 0:
                raise RevertedError(f"Transaction {tx_hash} reverted")

            self.logger.info(f"✅ Swap {amount} {direction} successfully, hash: {short_hash(tx_hash)}")

            step = "report"
            await self._report(chain, wallet, direction, amount_raw, quote, receipt, fees, proxy)
            return tx_hash

        except StoppedError:
            self.logger.info(f"⏹️ Swap {label} stopped at step '{step}'")
            raise
        except SwapError as e:
            self.logger.error(f"❌ Swap {label} failed at step '{step}': {e}")
            raise
        except Exception as e:
            self.logger.error(f"❌ Swap {label} failed at step '{step}': {e}")
            raise SwapError(f"{step}: {e}") from e

    async def _fetch_quote(self, chain, wallet, direction: SwapDirection, amount_raw: int,
                           proxy: Optional[str]) -> SwapQuote:
        try:
            lifi_quote = await self.api.get_quote(
                direction.token_in, direction.token_out, amount_raw, wallet.api_address, chain.chain_id, proxy)
        except Exception as e:
            raise QuoteError(f"Failed to get swap quote: {e}") from e
        return parse_quote(lifi_quote)

    async def _ensure_allowance(self, chain, wallet, token_address: str, spender: str, amount_raw: int,
                                fees: FeeParams) -> bool:
        """Unlimited approve, если allowance меньше суммы; True если approve отправлялся"""
        try:
            allowance = await chain.get_allowance(token_address, wallet.address, spender)
        except Exception as e:
            raise ApprovalError(f"Allowance check failed: {e}") from e

        if allowance >= amount_raw:
            self.logger.debug("✅ Allowance already sufficient")
            return False

        self.logger.info("📝 Approving token...")
        nonce = await self.nonce_tracker.next_nonce(chain, wallet.address)
        try:
            approve_hash = await chain.submit_approval(wallet.account, token_address, spender, MAX_UINT256,
                                                       fees, nonce)
        except Exception as e:
            if is_nonce_error(e):
                self.nonce_tracker.invalidate(chain.chain_id, wallet.address)
            raise ApprovalError(f"Approval submission failed: {e}") from e

        try:
            receipt = await self.confirmation_monitor.await_confirmation(chain, approve_hash, CONFIRMATION_TIMEOUT)
        except (ConfirmationTimeoutError, ReceiptError) as e:
            raise ApprovalError(f"Approval not confirmed: {e}") from e

        if receipt.status == 0:
            raise ApprovalError(f"Approval {approve_hash} reverted")

        self.logger.info(f"✅ Approval successful: {short_hash(approve_hash)}")
        return True

    async def _resolve_gas_limit(self, chain, wallet, call: SwapCall) -> int:
        if call.gas_limit:
            return int(call.gas_limit)
        estimated = await chain.estimate_gas({
            'from': wallet.address,
            'to': call.to,
            'data': call.data,
            'value': call.value,
        })
        return int(estimated * GAS_LIMIT_BUFFER)

    async def _submit(self, chain, wallet, call: SwapCall, gas_limit: int, fees: FeeParams) -> str:
        nonce = await self.nonce_tracker.next_nonce(chain, wallet.address)
        tx = {
            'from': wallet.address,
            'to': call.to,
            'data': call.data,
            'value': call.value,
            'gas': gas_limit,
            'nonce': nonce,
            'chainId': chain.chain_id,
            **fees.to_tx_fields(),
        }
        try:
            return await chain.submit_transaction(wallet.account, tx)
        except Exception as e:
            nonce_related = is_nonce_error(e)
            if nonce_related:
                self.nonce_tracker.invalidate(chain.chain_id, wallet.address)
                self.logger.warning("⚠️ Nonce error detected, resetting nonce for next attempt")
            raise SubmissionError(f"Transaction failed: {e}", nonce_related=nonce_related) from e

    @staticmethod
    def build_report(chain_id: int, wallet, direction: SwapDirection, amount_raw: int,
                     quote: Optional[SwapQuote], receipt: Receipt, fees: FeeParams) -> dict:
        gas_price = receipt.effective_gas_price or fees.price_per_gas
        return {
            'hash': receipt.tx_hash.lower(),
            'blockchainId': chain_id,
            'type': direction.direction_type,
            'walletAddress': wallet.api_address,
            'fromTokenAddress': direction.token_in.lower(),
            'toTokenAddress': direction.token_out.lower(),
            'fromTokenSymbol': direction.from_symbol,
            'toTokenSymbol': direction.to_symbol,
            'fromAmount': str(amount_raw),
            # wrap/unwrap идет 1:1
            'toAmount': quote.estimated_out if quote else str(amount_raw),
            'gasFeeTokenAddress': NATIVE_TOKEN_ADDRESS.lower(),
            'gasFeeTokenSymbol': NATIVE_SYMBOL,
            'gasFeeAmount': str(receipt.gas_used * gas_price),
        }

    async def _report(self, chain, wallet, direction, amount_raw, quote, receipt, fees, proxy):
        """Отчет о транзакции; ошибка только логируется"""
        report = self.build_report(chain.chain_id, wallet, direction, amount_raw, quote, receipt, fees)
        try:
            response = await self.api.report_transaction(report, proxy)
            points = (response or {}).get('pointsAmount')
            self.logger.info(f"🏆 Transaction reported successfully: Points {points}")
        except Exception as e:
            self.logger.error(f"❌ Failed to report transaction: {e}")
