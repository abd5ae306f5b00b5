from abc import ABC, abstractmethod
from typing import Optional, Tuple

from eth_abi import encode
from web3 import Web3

from config.constants import (
    DIRECTION_TYPE_UNWRAP,
    DIRECTION_TYPE_WRAP,
    ROUTER_ADDRESS,
    ROUTER_DIRECTIONS,
    WPOL_ADDRESS,
    WRAP_DIRECTIONS,
)
from core.exceptions import QuoteError
from core.models import SwapCall, SwapDirection, SwapQuote


def function_selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def parse_quote(lifi_quote: dict) -> SwapQuote:
    """Разбор lifiQuote: transactionRequest.{data,gasLimit}, estimate.{approvalAddress,toAmount}"""
    try:
        request = lifi_quote['transactionRequest']
        estimate = lifi_quote['estimate']
        route_data = request['data']
        gas_limit = request.get('gasLimit')
        return SwapQuote(
            route_data=route_data,
            estimated_out=str(estimate.get('toAmount', '0')),
            approval_target=estimate.get('approvalAddress'),
            gas_limit=int(gas_limit, 0) if isinstance(gas_limit, str) else gas_limit,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise QuoteError(f"Malformed quote response: {e}")


class SwapStrategy(ABC):
    """Как превратить направление и сумму в вызов контракта"""

    name = "base"
    directions: Tuple[SwapDirection, ...] = ()

    @abstractmethod
    def requires_quote(self) -> bool:
        ...

    @abstractmethod
    def build_call(self, direction: SwapDirection, amount_raw: int, wallet_address: str,
                   quote: Optional[SwapQuote] = None) -> SwapCall:
        ...


class RouterSwapStrategy(SwapStrategy):
    """USDC <-> USDT через Tea-Fi router (makePublicSwap) по маршруту из LI.FI"""

    name = "router"
    directions = ROUTER_DIRECTIONS

    MAKE_PUBLIC_SWAP = "makePublicSwap(bytes,(bool,bool),bytes,bytes)"

    def requires_quote(self) -> bool:
        return True

    def build_call(self, direction, amount_raw, wallet_address, quote=None) -> SwapCall:
        if quote is None:
            raise QuoteError(f"Router swap {direction} requires a quote")

        route_data = Web3.to_bytes(hexstr=quote.route_data)
        # synthSupport = (false, false); permit и token signature пустые
        args = encode(
            ['bytes', '(bool,bool)', 'bytes', 'bytes'],
            [route_data, (False, False), b'', b'']
        )
        data = function_selector(self.MAKE_PUBLIC_SWAP) + args

        return SwapCall(
            to=Web3.to_checksum_address(ROUTER_ADDRESS),
            data=Web3.to_hex(data),
            value=0,
            gas_limit=quote.gas_limit,
            approval_target=quote.approval_target,
        )


class WrapSwapStrategy(SwapStrategy):
    """POL <-> WPOL через deposit()/withdraw(uint256), без котировки и approve"""

    name = "wrap"
    directions = WRAP_DIRECTIONS

    def requires_quote(self) -> bool:
        return False

    def build_call(self, direction, amount_raw, wallet_address, quote=None) -> SwapCall:
        wpol = Web3.to_checksum_address(WPOL_ADDRESS)

        if direction.direction_type == DIRECTION_TYPE_WRAP:
            return SwapCall(to=wpol, data=Web3.to_hex(function_selector("deposit()")), value=amount_raw)

        if direction.direction_type == DIRECTION_TYPE_UNWRAP:
            data = function_selector("withdraw(uint256)") + encode(['uint256'], [amount_raw])
            return SwapCall(to=wpol, data=Web3.to_hex(data), value=0)

        raise ValueError(f"Direction {direction} is not a wrap/unwrap")


STRATEGIES = {
    RouterSwapStrategy.name: RouterSwapStrategy,
    WrapSwapStrategy.name: WrapSwapStrategy,
}


def create_strategy(name: str) -> SwapStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown swap strategy: {name}")
