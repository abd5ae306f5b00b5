import re
from typing import Optional

import requests
from aiohttp import BasicAuth, TCPConnector
from aiohttp_socks import ProxyConnector
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import HTTPProvider, Web3
from web3.middleware import ExtraDataToPOAMiddleware

SUPPORTED_SCHEMES = ("http://", "https://", "socks4://", "socks5://")


class ProxyManager:
    def __init__(self, proxy_url: Optional[str] = None):
        self.proxy_url = self.normalize_proxy(proxy_url) if proxy_url else None
        self.logger = None

    def set_logger(self, logger):
        """Установка логгера"""
        self.logger = logger

    @staticmethod
    def normalize_proxy(proxy: str) -> str:
        """host:port без схемы считаем http-прокси"""
        proxy = proxy.strip()
        if proxy.startswith(SUPPORTED_SCHEMES):
            return proxy
        return f"http://{proxy}"

    @property
    def is_socks(self) -> bool:
        return bool(self.proxy_url) and self.proxy_url.startswith("socks")

    def create_web3_instance(self, rpc_url: str) -> Web3:
        """Создание экземпляра Web3 с прокси и retry стратегией"""
        if self.proxy_url:
            session = requests.Session()

            retry_strategy = Retry(
                total=3,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS", "POST"],
                backoff_factor=1
            )

            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

            session.proxies = {
                'http': self.proxy_url,
                'https': self.proxy_url
            }

            web3 = Web3(HTTPProvider(rpc_url, session=session))
            if self.logger:
                self.logger.info(f"🔌 RPC via proxy {self.describe()}")
        else:
            web3 = Web3(Web3.HTTPProvider(rpc_url))

        # Polygon PoS отдает extraData длиннее 32 байт
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return web3

    def build_aiohttp_config(self):
        """(connector, proxy, proxy_auth) для aiohttp.ClientSession / session.request"""
        if not self.proxy_url:
            return None, None, None

        if self.is_socks:
            return ProxyConnector.from_url(self.proxy_url), None, None

        match = re.match(r"(https?)://(.*?):(.*?)@(.*)", self.proxy_url)
        if match:
            scheme, username, password, host_port = match.groups()
            return TCPConnector(), f"{scheme}://{host_port}", BasicAuth(username, password)

        return TCPConnector(), self.proxy_url, None

    def describe(self) -> str:
        if not self.proxy_url:
            return "direct"
        # Не показываем логин/пароль в логах
        return re.sub(r"//.*@", "//***@", self.proxy_url)
