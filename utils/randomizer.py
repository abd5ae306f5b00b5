import random
from decimal import Decimal


class Randomizer:
    """Утилиты для генерации случайных значений"""

    @staticmethod
    def get_random_delay(min_seconds: float = 10.0, max_seconds: float = 25.0) -> float:
        """Получение случайной задержки"""
        return random.uniform(min_seconds, max_seconds)

    @staticmethod
    def get_random_amount(min_amount: float, max_amount: float, precision: int = 3) -> Decimal:
        """Случайная сумма из диапазона, округленная до precision знаков"""
        value = random.uniform(min_amount, max_amount)
        amount = Decimal(f"{value:.{precision}f}")
        # Округление не должно выводить сумму за пределы диапазона
        low = Decimal(str(min_amount))
        high = Decimal(str(max_amount))
        return min(max(amount, low), high)
