from web3 import Web3

from core.exceptions import InvalidAddressError, StoppedError
from utils.logger import setup_logger, short_address


class NonceTracker:
    """
    Per (chain_id, address) nonce cache.

    The chain's pending count is re-read on every call, so transactions sent
    from elsewhere are picked up, while consecutive local submissions never
    reuse a value even if the node has not seen the previous one yet.
    """

    def __init__(self, lifecycle=None, reset_on_cycle_end: bool = True, logger=None):
        self.lifecycle = lifecycle
        self.reset_on_cycle_end = reset_on_cycle_end
        self.logger = logger or setup_logger("NonceTracker")
        self._records = {}

    @staticmethod
    def _key(chain_id: int, address: str):
        return chain_id, address.lower()

    async def next_nonce(self, chain, address: str) -> int:
        if self.lifecycle is not None and self.lifecycle.is_stopping():
            raise StoppedError("Nonce retrieval stopped due to stop request")

        if not address or not Web3.is_address(address):
            raise InvalidAddressError(f"Invalid wallet address: {address}")

        try:
            pending = await chain.get_pending_nonce(address)
        except Exception as e:
            self.logger.error(f"❌ Failed to read pending nonce for {short_address(address)}: {e}")
            raise

        key = self._key(chain.chain_id, address)
        last_used = self._records.get(key, pending - 1)
        nonce = max(pending, last_used + 1)
        self._records[key] = nonce

        self.logger.debug(f"🔢 Nonce for {short_address(address)}: {nonce} (pending: {pending})")
        return nonce

    def last_nonce(self, chain_id: int, address: str):
        return self._records.get(self._key(chain_id, address))

    def invalidate(self, chain_id: int, address: str):
        if self._records.pop(self._key(chain_id, address), None) is not None:
            self.logger.info(f"🔄 Nonce cache reset for {short_address(address)}")

    def clear(self):
        self._records.clear()

    def on_cycle_end(self):
        if self.reset_on_cycle_end:
            self.clear()
            self.logger.debug("🧹 Nonce cache cleared at cycle end")
