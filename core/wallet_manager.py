import os
from decimal import Decimal
from typing import List, Optional, Tuple

from eth_account import Account

from config.constants import NATIVE_SYMBOL, TRACKED_TOKENS
from core.chain_client import ChainClient
from core.models import WalletSnapshot
from core.proxy_manager import ProxyManager
from utils.logger import setup_logger, short_address
from utils.security import SecurityManager, resolve_private_key


class Wallet:
    def __init__(self, index: int, private_key: str):
        self.index = index
        self.account = Account.from_key(private_key)
        # checksum для RPC, lowercase для Tea-Fi API
        self.address = self.account.address
        self.api_address = self.address.lower()

    def __repr__(self):
        return f"Wallet({self.index}, {short_address(self.address)})"


def to_units(raw: int, decimals: int) -> Decimal:
    return Decimal(raw) / (Decimal(10) ** decimals)


def to_raw(amount: Decimal, decimals: int) -> int:
    return int(Decimal(amount) * (Decimal(10) ** decimals))


def _read_lines(path: str) -> List[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip() and not line.strip().startswith('#')]


class WalletManager:
    def __init__(self, settings, logger=None):
        self.settings = settings
        self.logger = logger or setup_logger("WalletManager")
        self.wallets: List[Wallet] = []
        self.proxies: List[str] = []
        self.selected_index: Optional[int] = None
        self._snapshots: Tuple[WalletSnapshot, ...] = ()
        self._chain_clients = {}  # Кэш ChainClient по прокси

    # ---- загрузка -----------------------------------------------------------

    def load_wallets(self, path: str = None) -> List[Wallet]:
        """Загрузка кошельков из pk.txt (hex или Fernet-зашифрованные ключи)"""
        path = path or self.settings.private_keys_file
        if not os.path.exists(path):
            self.logger.error(f"❌ Private keys file not found: {path}")
            return self.wallets

        security_manager = None
        wallets = []
        for line_number, line in enumerate(_read_lines(path), 1):
            try:
                if security_manager is None and self.settings.encryption_key:
                    security_manager = SecurityManager(self.settings.encryption_key)
                private_key = resolve_private_key(line, security_manager)
                wallets.append(Wallet(len(wallets), private_key))
            except ValueError as e:
                self.logger.error(f"❌ Skipping invalid key on line {line_number}: {e}")

        self.wallets = wallets
        self._snapshots = tuple(self._empty_snapshot(wallet) for wallet in wallets)
        self.logger.info(f"🎒 Loaded {len(wallets)} wallet(s) from {path}")
        return self.wallets

    def load_proxies(self, path: str = None) -> List[str]:
        """proxy.txt необязателен: без него все запросы идут напрямую"""
        path = path or self.settings.proxies_file
        if not os.path.exists(path):
            self.logger.info(f"🔗 No proxy file ({path}), using direct connections")
            self.proxies = []
            return self.proxies

        self.proxies = [ProxyManager.normalize_proxy(line) for line in _read_lines(path)]
        self.logger.info(f"🔌 Loaded {len(self.proxies)} proxies from {path}")
        return self.proxies

    def proxy_for(self, index: int) -> Optional[str]:
        if not self.proxies:
            return None
        return self.proxies[index % len(self.proxies)]

    def chain_for(self, proxy: Optional[str]) -> ChainClient:
        if proxy not in self._chain_clients:
            proxy_manager = ProxyManager(proxy)
            proxy_manager.set_logger(self.logger)
            web3 = proxy_manager.create_web3_instance(self.settings.rpc_url)
            self._chain_clients[proxy] = ChainClient(web3, self.settings.chain_id)
            self.logger.debug(f"🌐 Chain client created ({proxy_manager.describe()})")
        return self._chain_clients[proxy]

    # ---- снапшоты -----------------------------------------------------------

    @property
    def snapshots(self) -> Tuple[WalletSnapshot, ...]:
        return self._snapshots

    def _empty_snapshot(self, wallet: Wallet) -> WalletSnapshot:
        return WalletSnapshot(
            index=wallet.index,
            address=wallet.address,
            native_balance=Decimal(0),
            token_balances={symbol: Decimal(0) for symbol in TRACKED_TOKENS},
            is_selected=wallet.index == self.selected_index,
        )

    def select(self, index: int):
        self.selected_index = index
        self._snapshots = tuple(
            WalletSnapshot(
                index=snapshot.index,
                address=snapshot.address,
                native_balance=snapshot.native_balance,
                token_balances=snapshot.token_balances,
                is_selected=snapshot.index == index,
            )
            for snapshot in self._snapshots
        )

    async def _read_snapshot(self, wallet: Wallet) -> WalletSnapshot:
        chain = self.chain_for(self.proxy_for(wallet.index))
        native = await chain.get_balance(wallet.address)
        tokens = {}
        for symbol, (token_address, decimals) in TRACKED_TOKENS.items():
            tokens[symbol] = to_units(await chain.get_token_balance(token_address, wallet.address), decimals)

        return WalletSnapshot(
            index=wallet.index,
            address=wallet.address,
            native_balance=to_units(native, 18),
            token_balances=tokens,
            is_selected=wallet.index == self.selected_index,
        )

    async def refresh_snapshots(self) -> Tuple[WalletSnapshot, ...]:
        """Полная пересборка снапшотов; ошибка одного кошелька оставляет его прежние данные"""
        previous = {snapshot.index: snapshot for snapshot in self._snapshots}
        rebuilt = []

        for wallet in self.wallets:
            try:
                rebuilt.append(await self._read_snapshot(wallet))
            except Exception as e:
                self.logger.warning(f"⚠️ Balance refresh failed for {short_address(wallet.address)}: {e}")
                rebuilt.append(previous.get(wallet.index) or self._empty_snapshot(wallet))

        self._snapshots = tuple(rebuilt)
        return self._snapshots

    def format_snapshots(self) -> str:
        lines = []
        for snapshot in self._snapshots:
            marker = "👉" if snapshot.is_selected else "  "
            tokens = " | ".join(f"{symbol}: {balance:.4f}" for symbol, balance in snapshot.token_balances.items())
            lines.append(
                f"{marker} {snapshot.index + 1}. {short_address(snapshot.address)} | "
                f"{NATIVE_SYMBOL}: {snapshot.native_balance:.4f} | {tokens}")
        return "\n".join(lines) if lines else "❌ No wallets loaded"

