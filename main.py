import asyncio
import sys

from config.settings import Config, Settings
from core.confirmation_monitor import ConfirmationMonitor
from core.cycle_scheduler import CycleScheduler
from core.exceptions import AlreadyRunningError, ConfigValidationError
from core.gas_monitor import GasMonitor
from core.lifecycle import LifecycleController
from core.models import ConfigField
from core.nonce_tracker import NonceTracker
from core.wallet_manager import WalletManager
from services.checkin_service import CheckInService
from services.swap_service import SwapService
from services.swap_strategies import create_strategy
from services.teafi_api import TeaFiApi
from utils.input_utils import parse_number, secure_input
from utils.logger import clear_logs, memory_log, setup_logger


class TeaFiAutoBot:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = setup_logger("TeaFiAutoBot")
        self.config = Config(settings.activity_config_file)

        self.lifecycle = LifecycleController()
        self.wallet_manager = WalletManager(settings)
        self.api = TeaFiApi()
        self.nonce_tracker = NonceTracker(self.lifecycle, settings.nonce_reset_on_cycle_end)

        self.swap_service = SwapService(
            strategy=create_strategy(settings.swap_strategy),
            chain_factory=self.wallet_manager.chain_for,
            api=self.api,
            nonce_tracker=self.nonce_tracker,
            gas_monitor=GasMonitor(),
            confirmation_monitor=ConfirmationMonitor(self.lifecycle),
            lifecycle=self.lifecycle,
        )
        self.scheduler = CycleScheduler(
            config=self.config,
            wallet_manager=self.wallet_manager,
            swap_service=self.swap_service,
            checkin_service=CheckInService(self.api),
            nonce_tracker=self.nonce_tracker,
            lifecycle=self.lifecycle,
        )

    async def initialize(self) -> bool:
        """Загрузка кошельков и прокси, первичные балансы"""
        self.logger.info("🔄 Initializing Tea-Fi Auto Bot...")
        self.wallet_manager.load_proxies()
        self.wallet_manager.load_wallets()

        if not self.wallet_manager.wallets:
            self.logger.error(f"❌ No wallets available, check {self.settings.private_keys_file}")
            return False

        await self.wallet_manager.refresh_snapshots()
        self.logger.info(f"✅ Initialized with {self.settings.swap_strategy} strategy "
                         f"(chain {self.settings.chain_id})")
        return True

    def toggle_activity(self):
        if self.lifecycle.is_active:
            self.lifecycle.request_stop()
            return
        try:
            self.lifecycle.start(self.scheduler.run_cycle)
        except AlreadyRunningError as e:
            self.logger.warning(f"⚠️ {e}")

    async def shutdown(self):
        """Корректное завершение работы"""
        self.logger.info("🛑 Shutting down Tea-Fi Auto Bot...")
        if self.lifecycle.is_active:
            self.lifecycle.request_stop()
            await self.lifecycle.wait_until_idle()
        self.logger.info("👋 Tea-Fi Auto Bot stopped successfully")


def show_status(bot: TeaFiAutoBot, log_lines: int = 15):
    print("\n🎒 Wallets")
    print("=" * 60)
    print(bot.wallet_manager.format_snapshots())
    print(f"\n📌 Status: {bot.lifecycle.state.value} | Active processes: {bot.lifecycle.in_flight_count}")
    print("\n📝 Recent logs")
    print("-" * 60)
    for entry in memory_log.entries()[-log_lines:]:
        print(f"   {entry}")


async def ask(prompt: str) -> str:
    # Ввод в отдельном потоке, чтобы цикл активности продолжал работать
    return await asyncio.to_thread(secure_input, prompt)


async def config_menu(bot: TeaFiAutoBot):
    fields = list(ConfigField)
    activity = bot.config.activity

    print("\n⚙️ Set Manual Config")
    print("=" * 40)
    for i, config_field in enumerate(fields, 1):
        if config_field.is_range:
            swap_range = activity.range_for(config_field.symbol)
            current = f"{swap_range.min} - {swap_range.max}"
        elif config_field is ConfigField.SWAP_REPETITIONS:
            current = activity.swap_repetitions
        else:
            current = activity.loop_hours
        print(f"{i}. {config_field.label}: {current}")
    print(f"{len(fields) + 1}. ↩️ Back")

    choice = await ask(f"\nSelect option (1-{len(fields) + 1}): ")
    if not choice.isdigit() or not 1 <= int(choice) <= len(fields):
        return

    config_field = fields[int(choice) - 1]
    if config_field.is_range:
        min_value = parse_number(await ask(f"Enter min value for {config_field.symbol} swap range: "))
        max_value = parse_number(await ask(f"Enter max value for {config_field.symbol} swap range: "))
        values = (min_value, max_value)
    else:
        values = (parse_number(await ask(f"Enter new value for {config_field.label}: ")),)

    if any(value is None for value in values):
        print("❌ Invalid input. Please enter a number.")
        return

    try:
        bot.config.update(config_field, *values)
        print(f"✅ {config_field.label} updated")
    except ConfigValidationError as e:
        print(f"❌ {e}")


async def main_menu(bot: TeaFiAutoBot):
    """Главное меню"""
    while True:
        start_label = "🛑 Stop Activity" if bot.lifecycle.is_active else "🚀 Start Auto Daily Activity"

        print("\n🍵 Tea-Fi Auto Bot")
        print("=" * 40)
        print(f"1. {start_label}")
        print("2. ⚙️ Set Manual Config")
        print("3. 🧹 Clear Logs")
        print("4. 🔄 Refresh")
        print("5. 🚪 Exit")

        choice = await ask("\nSelect action (1-5): ")

        if choice == "1":
            bot.toggle_activity()
        elif choice == "2":
            await config_menu(bot)
        elif choice == "3":
            clear_logs()
            print("🧹 Logs cleared")
        elif choice == "4":
            await bot.wallet_manager.refresh_snapshots()
            show_status(bot)
        elif choice == "5":
            await bot.shutdown()
            print("👋 Bye!")
            break
        else:
            print("❌ Invalid choice. Try again.")


async def run():
    settings = Settings.from_env()
    bot = TeaFiAutoBot(settings)
    if not await bot.initialize():
        return 1
    show_status(bot)
    await main_menu(bot)
    return 0


if __name__ == "__main__":
    print("🍵 Tea-Fi Auto Bot - Daily Swaps & Check-In on Polygon")

    logger = setup_logger("TeaFiAutoBot")
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"💥 Fatal error: {e}")
        sys.exit(1)
