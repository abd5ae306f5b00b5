import asyncio
from typing import Optional

from web3 import Web3
from web3.exceptions import TransactionNotFound

from config.constants import NATIVE_TOKEN_ADDRESS
from core.exceptions import ReceiptError
from core.models import FeeEstimate, FeeParams, Receipt
from utils.logger import setup_logger

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "success", "type": "bool"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    }
]

APPROVE_GAS_LIMIT = 100000


def is_native(token_address: str) -> bool:
    return not token_address or token_address.lower() == NATIVE_TOKEN_ADDRESS


class ChainClient:
    """
    Async facade over a (possibly proxied) sync Web3 instance.

    Every RPC call runs in a worker thread; callers await them one at a time.
    """

    def __init__(self, web3: Web3, chain_id: int, logger=None):
        self.web3 = web3
        self.chain_id = chain_id
        self.logger = logger or setup_logger("ChainClient")

    def _token(self, token_address: str):
        return self.web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)

    async def get_balance(self, address: str) -> int:
        return await asyncio.to_thread(self.web3.eth.get_balance, Web3.to_checksum_address(address))

    async def get_token_balance(self, token_address: str, address: str) -> int:
        if is_native(token_address):
            return await self.get_balance(address)
        contract = self._token(token_address)
        return await asyncio.to_thread(
            contract.functions.balanceOf(Web3.to_checksum_address(address)).call)

    async def get_pending_nonce(self, address: str) -> int:
        return await asyncio.to_thread(
            self.web3.eth.get_transaction_count, Web3.to_checksum_address(address), 'pending')

    async def get_fee_estimate(self) -> FeeEstimate:
        """Каждое поле читается отдельно: сбой одного RPC-метода не теряет остальные"""
        def _read(name, getter):
            try:
                return getter()
            except Exception as e:
                self.logger.warning(f"⚠️ Fee read '{name}' failed: {e}")
                return None

        def _fetch():
            gas_price = _read('gas_price', lambda: self.web3.eth.gas_price)
            latest = _read('latest block', lambda: self.web3.eth.get_block('latest'))
            base_fee = latest.get('baseFeePerGas') if latest else None
            if base_fee is None:
                return FeeEstimate(gas_price=gas_price)
            priority_fee = _read('max_priority_fee', lambda: self.web3.eth.max_priority_fee)
            if priority_fee is None:
                return FeeEstimate(gas_price=gas_price)
            return FeeEstimate(
                gas_price=gas_price,
                max_fee_per_gas=2 * base_fee + priority_fee,
                max_priority_fee_per_gas=priority_fee,
            )

        return await asyncio.to_thread(_fetch)

    async def estimate_gas(self, tx: dict) -> int:
        return await asyncio.to_thread(self.web3.eth.estimate_gas, tx)

    async def submit_transaction(self, account, tx: dict) -> str:
        """Подпись и отправка; возвращает 0x-хэш"""
        tx = {**tx, 'chainId': self.chain_id}

        def _send():
            signed_txn = account.sign_transaction(tx)
            return self.web3.eth.send_raw_transaction(signed_txn.raw_transaction)

        tx_hash = await asyncio.to_thread(_send)
        return Web3.to_hex(tx_hash)

    async def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        try:
            raw = await asyncio.to_thread(self.web3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            return None

        if raw is None:
            return None

        try:
            return Receipt(
                tx_hash=tx_hash,
                status=int(raw['status']),
                block_number=raw.get('blockNumber'),
                gas_used=int(raw['gasUsed']),
                effective_gas_price=raw.get('effectiveGasPrice'),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ReceiptError(f"Malformed receipt for {tx_hash}: {e}")

    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        contract = self._token(token_address)
        return await asyncio.to_thread(
            contract.functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)).call)

    async def submit_approval(self, account, token_address: str, spender: str, amount: int,
                              fee_params: FeeParams, nonce: int) -> str:
        contract = self._token(token_address)
        tx = await asyncio.to_thread(
            contract.functions.approve(Web3.to_checksum_address(spender), amount).build_transaction,
            {
                'from': account.address,
                'gas': APPROVE_GAS_LIMIT,
                'nonce': nonce,
                'chainId': self.chain_id,
                **fee_params.to_tx_fields(),
            }
        )
        return await self.submit_transaction(account, tx)
