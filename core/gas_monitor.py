from web3 import Web3

from core.models import FeeParams
from utils.logger import setup_logger

FALLBACK_GAS_PRICE = Web3.to_wei(1, 'gwei')


class GasMonitor:
    def __init__(self, logger=None):
        self.logger = logger or setup_logger("GasMonitor")

    async def select_fees(self, chain) -> FeeParams:
        """Выбор параметров комиссии: EIP-1559 если сеть их отдает, иначе legacy"""
        try:
            estimate = await chain.get_fee_estimate()

            if estimate.max_fee_per_gas and estimate.max_priority_fee_per_gas:
                fees = FeeParams.eip1559(estimate.max_fee_per_gas, estimate.max_priority_fee_per_gas)
                self.logger.debug(
                    f"⛽ EIP-1559 fees: max {Web3.from_wei(fees.max_fee_per_gas, 'gwei'):.2f} Gwei, "
                    f"priority {Web3.from_wei(fees.max_priority_fee_per_gas, 'gwei'):.2f} Gwei")
                return fees

            gas_price = estimate.gas_price or FALLBACK_GAS_PRICE
            self.logger.debug(f"⛽ Legacy gas price: {Web3.from_wei(gas_price, 'gwei'):.2f} Gwei")
            return FeeParams.legacy(gas_price)

        except Exception as e:
            self.logger.error(f"❌ Gas monitoring error: {e}")
            # Безопасное значение по умолчанию
            return FeeParams.legacy(FALLBACK_GAS_PRICE)
