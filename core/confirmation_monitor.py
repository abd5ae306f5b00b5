import time

from config.constants import CONFIRMATION_POLL_INTERVAL, CONFIRMATION_TIMEOUT
from core.exceptions import ConfirmationTimeoutError, ReceiptError, StoppedError
from core.models import Receipt
from utils.logger import setup_logger, short_hash


class ConfirmationMonitor:
    def __init__(self, lifecycle, poll_interval: float = CONFIRMATION_POLL_INTERVAL, logger=None):
        self.lifecycle = lifecycle
        self.poll_interval = poll_interval
        self.logger = logger or setup_logger("ConfirmationMonitor")

    async def await_confirmation(self, chain, tx_hash: str, timeout: float = CONFIRMATION_TIMEOUT) -> Receipt:
        """Ожидание receipt с блоком; таймаут считается от первого входа"""
        started = time.monotonic()
        self.logger.info(f"⏳ Waiting for confirmation of {short_hash(tx_hash)}...")

        while True:
            elapsed = time.monotonic() - started
            if elapsed >= timeout:
                raise ConfirmationTimeoutError(
                    f"Transaction {tx_hash} not confirmed within {timeout} seconds")

            if self.lifecycle.is_stopping():
                raise StoppedError(f"Confirmation wait for {short_hash(tx_hash)} stopped due to stop request")

            try:
                receipt = await chain.get_receipt(tx_hash)
            except ReceiptError:
                raise
            except Exception as e:
                self.logger.warning(f"⚠️ Receipt poll failed for {short_hash(tx_hash)}: {e}")
                receipt = None

            if receipt is not None and receipt.confirmed:
                self.logger.debug(f"📦 {short_hash(tx_hash)} included in block {receipt.block_number}")
                return receipt

            remaining = timeout - (time.monotonic() - started)
            if remaining <= 0:
                continue
            await self.lifecycle.sleep(min(self.poll_interval, remaining))
