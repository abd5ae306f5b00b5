import time

from config.constants import ACCOUNT_DELAY, AMOUNT_PRECISION, SWAP_DELAY_RANGE
from core.exceptions import StoppedError
from utils.logger import setup_logger, short_address
from utils.randomizer import Randomizer


class CycleScheduler:
    """Один проход по всем аккаунтам: check-in, затем N свапов с чередованием направлений"""

    def __init__(self, config, wallet_manager, swap_service, checkin_service, nonce_tracker, lifecycle,
                 swap_delay_range=SWAP_DELAY_RANGE, account_delay: float = ACCOUNT_DELAY, logger=None):
        self.config = config
        self.wallet_manager = wallet_manager
        self.swap_service = swap_service
        self.checkin_service = checkin_service
        self.nonce_tracker = nonce_tracker
        self.lifecycle = lifecycle
        self.swap_delay_range = swap_delay_range
        self.account_delay = account_delay
        self.logger = logger or setup_logger("CycleScheduler")

        # ✅ СТАТИСТИКА ТЕКУЩЕГО ЦИКЛА
        self.cycle_stats = {}
        self._reset_stats()

    def _reset_stats(self):
        self.cycle_stats = {
            'start_time': time.time(),
            'accounts_processed': 0,
            'successful_swaps': 0,
            'failed_swaps': 0,
        }

    async def run_cycle(self):
        activity = self.config.activity
        wallets = self.wallet_manager.wallets

        if not wallets:
            self.logger.error("❌ No valid accounts found.")
            return

        self._reset_stats()
        self.logger.info(
            f"🚀 Starting daily activity for all accounts. Auto Swap: {activity.swap_repetitions}x")

        try:
            for account_index, wallet in enumerate(wallets):
                if self.lifecycle.is_stopping():
                    break

                await self._process_account(account_index, wallet, activity)
                self.cycle_stats['accounts_processed'] += 1

                if account_index < len(wallets) - 1 and not self.lifecycle.is_stopping():
                    self.logger.info(f"⏳ Waiting {self.account_delay} seconds before next account...")
                    await self.lifecycle.sleep(self.account_delay)

            if not self.lifecycle.is_stopping():
                self.logger.info(
                    f"🏁 All accounts processed. Waiting {activity.loop_hours} hours for next cycle.")
                self.lifecycle.schedule_next_cycle(activity.loop_hours * 3600)
        finally:
            self.nonce_tracker.on_cycle_end()
            self._log_stats()

    async def _process_account(self, account_index: int, wallet, activity):
        account_label = f"Account {account_index + 1}"
        self.wallet_manager.select(account_index)
        proxy = self.wallet_manager.proxy_for(account_index)

        self.logger.info(f"👤 {account_label}: Using Proxy {proxy or 'none'}")
        self.logger.info(f"⏳ Processing {account_label.lower()}: {short_address(wallet.address)}")

        await self.checkin_service.check_in(wallet.api_address, proxy)

        directions = self.swap_service.directions
        repetitions = activity.swap_repetitions

        for swap_count in range(repetitions):
            if self.lifecycle.is_stopping():
                break

            direction = directions[swap_count % len(directions)]
            swap_range = activity.range_for(direction.from_symbol)
            amount = Randomizer.get_random_amount(swap_range.min, swap_range.max, AMOUNT_PRECISION)
            swap_label = f"{account_label} - Swap {swap_count + 1}"

            self.logger.info(f"🔄 {swap_label}: {amount} {direction}")
            stopped = False
            try:
                await self.swap_service.perform_swap(wallet, direction, amount, proxy)
                self.cycle_stats['successful_swaps'] += 1
            except StoppedError:
                stopped = True
            except Exception as e:
                self.cycle_stats['failed_swaps'] += 1
                self.logger.error(f"❌ {swap_label} ({direction}): Failed: {e}. Skipping.")
            finally:
                await self._refresh_wallets()

            if stopped:
                break

            if swap_count < repetitions - 1 and not self.lifecycle.is_stopping():
                delay = Randomizer.get_random_delay(*self.swap_delay_range)
                self.logger.info(f"⏳ {account_label} - Waiting {int(delay)} seconds before next swap...")
                await self.lifecycle.sleep(delay)

    async def _refresh_wallets(self):
        try:
            await self.wallet_manager.refresh_snapshots()
        except Exception as e:
            self.logger.warning(f"⚠️ Wallet refresh failed: {e}")

    def _log_stats(self):
        stats = self.cycle_stats
        elapsed = time.time() - stats['start_time']
        self.logger.info(
            f"📊 Cycle stats: {stats['accounts_processed']} accounts | "
            f"✅ {stats['successful_swaps']} | ❌ {stats['failed_swaps']} | {elapsed:.0f}s")
