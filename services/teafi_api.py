import json
import random
from typing import Optional

import aiohttp

from config.constants import (
    API_HEADERS,
    CHECKIN_STATUS_URL,
    CHECKIN_URL,
    NATIVE_TOKEN_ADDRESS,
    QUOTE_API_URL,
    QUOTE_EXCHANGE,
    QUOTE_SLIPPAGE,
    TRANSACTION_API_URL,
    USER_AGENTS,
)
from core.exceptions import ApiError
from core.proxy_manager import ProxyManager
from utils.logger import setup_logger

REQUEST_TIMEOUT = 30


class TeaFiApi:
    """HTTP клиент Tea-Fi: check-in, котировки LI.FI и отчеты о транзакциях"""

    def __init__(self, logger=None):
        self.logger = logger or setup_logger("TeaFiApi")

    async def _request(self, method: str, url: str, proxy: Optional[str] = None,
                       params: dict = None, payload: dict = None):
        headers = {**API_HEADERS, 'user-agent': random.choice(USER_AGENTS)}
        connector, proxy_url, proxy_auth = ProxyManager(proxy).build_aiohttp_config()
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)

        self.logger.debug(f"🔍 {method} {url} params={params} payload={payload}")

        async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
            async with session.request(method, url, params=params, json=payload, headers=headers,
                                       proxy=proxy_url, proxy_auth=proxy_auth) as response:
                text = await response.text()
                try:
                    data = json.loads(text) if text else {}
                except json.JSONDecodeError:
                    data = text

                if response.status >= 400:
                    self.logger.debug(f"🔍 Error response from {url}: {data}")
                    raise ApiError(url, response.status, data)

                self.logger.debug(f"🔍 Response from {url}: {data}")
                return data

    async def get_check_in_status(self, address: str, proxy: Optional[str] = None) -> dict:
        return await self._request('GET', CHECKIN_STATUS_URL, proxy, params={'address': address})

    async def check_in(self, address: str, proxy: Optional[str] = None) -> dict:
        return await self._request('POST', CHECKIN_URL, proxy, params={'address': address}, payload={})

    async def get_quote(self, from_token: str, to_token: str, amount_raw: int, wallet_address: str,
                        chain_id: int, proxy: Optional[str] = None) -> dict:
        """Котировка LI.FI; возвращает содержимое lifiQuote"""
        params = {
            'fromAddress': wallet_address,
            'fromAmount': str(amount_raw),
            'fromChain': chain_id,
            'fromToken': from_token,
            'toChain': chain_id,
            'toToken': to_token,
            'slippage': QUOTE_SLIPPAGE,
            'allowExchanges': QUOTE_EXCHANGE,
            'preferExchanges': QUOTE_EXCHANGE,
            'gasPaymentTokenAddress': NATIVE_TOKEN_ADDRESS,
        }
        data = await self._request('GET', QUOTE_API_URL, proxy, params=params)
        if not isinstance(data, dict) or not data.get('lifiQuote'):
            raise ApiError(QUOTE_API_URL, 200, {'message': 'response has no lifiQuote'})
        return data['lifiQuote']

    async def report_transaction(self, report: dict, proxy: Optional[str] = None) -> dict:
        return await self._request('POST', TRANSACTION_API_URL, proxy, payload=report)
