from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from core.exceptions import ConfigValidationError


class RunState(Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    STOPPING = "Stopping"
    WAITING_FOR_NEXT_CYCLE = "Waiting for next cycle"


@dataclass(frozen=True)
class SwapDirection:
    from_symbol: str
    to_symbol: str
    token_in: str
    token_out: str
    direction_type: int = 0
    decimals: int = 6

    def __str__(self):
        return f"{self.from_symbol} ➯ {self.to_symbol}"


@dataclass(frozen=True)
class SwapRange:
    min: float
    max: float

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}


DEFAULT_SWAP_RANGES = {
    "USDC": SwapRange(1, 1.1),
    "USDT": SwapRange(1, 1.4),
    "POL": SwapRange(0.5, 1),
    "WPOL": SwapRange(0.5, 1),
}
DEFAULT_SWAP_REPETITIONS = 1
DEFAULT_LOOP_HOURS = 24
MIN_LOOP_HOURS = 1


class ConfigField(Enum):
    """Closed set of user-editable activity settings (value = key in config.json)."""

    SWAP_REPETITIONS = "swapRepetitions"
    USDC_SWAP_RANGE = "usdcSwapRange"
    USDT_SWAP_RANGE = "usdtSwapRange"
    POL_SWAP_RANGE = "polSwapRange"
    WPOL_SWAP_RANGE = "wpolSwapRange"
    LOOP_HOURS = "loopHours"

    @property
    def is_range(self) -> bool:
        return self.name.endswith("_SWAP_RANGE")

    @property
    def symbol(self) -> Optional[str]:
        return self.name[:-len("_SWAP_RANGE")] if self.is_range else None

    @property
    def label(self) -> str:
        if self.is_range:
            return f"{self.symbol} Swap Range"
        return self.name.replace("_", " ").title()

    @classmethod
    def for_symbol(cls, symbol: str) -> "ConfigField":
        try:
            return cls[f"{symbol.upper()}_SWAP_RANGE"]
        except KeyError:
            raise ConfigValidationError(f"Unknown swap token: {symbol}")


def _positive_number(raw, default):
    """Mirror of the loose `Number(x) || default` parsing used for config.json."""
    if isinstance(raw, bool) or raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if value <= 0:
        return default
    return raw if isinstance(raw, int) else value


@dataclass
class ActivityConfig:
    swap_repetitions: int = DEFAULT_SWAP_REPETITIONS
    swap_ranges: Dict[str, SwapRange] = field(default_factory=lambda: dict(DEFAULT_SWAP_RANGES))
    loop_hours: float = DEFAULT_LOOP_HOURS

    def range_for(self, symbol: str) -> SwapRange:
        try:
            return self.swap_ranges[symbol]
        except KeyError:
            raise ConfigValidationError(f"No swap range configured for {symbol}")

    # ✅ ТИПИЗИРОВАННЫЕ СЕТТЕРЫ
    def set_swap_repetitions(self, value) -> int:
        try:
            repetitions = int(float(value))
        except (TypeError, ValueError):
            raise ConfigValidationError(f"Swap repetitions must be a number, got {value!r}")
        if repetitions <= 0:
            raise ConfigValidationError("Swap repetitions must be a positive number")
        self.swap_repetitions = repetitions
        return repetitions

    def set_swap_range(self, symbol: str, min_value, max_value) -> SwapRange:
        ConfigField.for_symbol(symbol)
        try:
            low, high = float(min_value), float(max_value)
        except (TypeError, ValueError):
            raise ConfigValidationError("Swap range bounds must be numbers")
        if low <= 0 or high <= 0:
            raise ConfigValidationError("Swap range bounds must be positive numbers")
        if low > high:
            raise ConfigValidationError("Min value cannot be greater than Max value")
        new_range = SwapRange(low, high)
        self.swap_ranges = {**self.swap_ranges, symbol: new_range}
        return new_range

    def set_loop_hours(self, value) -> float:
        try:
            hours = float(value)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"Loop hours must be a number, got {value!r}")
        if hours < MIN_LOOP_HOURS:
            raise ConfigValidationError(f"Invalid input. Minimum is {MIN_LOOP_HOURS} hour.")
        self.loop_hours = int(hours) if hours.is_integer() else hours
        return self.loop_hours

    def apply(self, config_field: ConfigField, *values):
        """Dispatch a user edit to the matching typed setter."""
        if config_field is ConfigField.SWAP_REPETITIONS:
            return self.set_swap_repetitions(*values)
        if config_field is ConfigField.LOOP_HOURS:
            return self.set_loop_hours(*values)
        return self.set_swap_range(config_field.symbol, *values)

    def to_dict(self) -> dict:
        data = {ConfigField.SWAP_REPETITIONS.value: self.swap_repetitions}
        for symbol, swap_range in self.swap_ranges.items():
            data[ConfigField.for_symbol(symbol).value] = swap_range.to_dict()
        data[ConfigField.LOOP_HOURS.value] = self.loop_hours
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityConfig":
        data = data or {}
        repetitions = _positive_number(data.get(ConfigField.SWAP_REPETITIONS.value), DEFAULT_SWAP_REPETITIONS)

        ranges = {}
        for symbol, default in DEFAULT_SWAP_RANGES.items():
            raw = data.get(ConfigField.for_symbol(symbol).value) or {}
            if not isinstance(raw, dict):
                raw = {}
            ranges[symbol] = SwapRange(
                _positive_number(raw.get("min"), default.min),
                _positive_number(raw.get("max"), default.max),
            )

        loop_hours = _positive_number(data.get(ConfigField.LOOP_HOURS.value), DEFAULT_LOOP_HOURS)
        if loop_hours < MIN_LOOP_HOURS:
            loop_hours = DEFAULT_LOOP_HOURS

        return cls(swap_repetitions=int(repetitions), swap_ranges=ranges, loop_hours=loop_hours)


@dataclass(frozen=True)
class FeeEstimate:
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


@dataclass(frozen=True)
class FeeParams:
    tx_type: int
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    @classmethod
    def legacy(cls, gas_price: int) -> "FeeParams":
        return cls(tx_type=0, gas_price=gas_price)

    @classmethod
    def eip1559(cls, max_fee_per_gas: int, max_priority_fee_per_gas: int) -> "FeeParams":
        return cls(tx_type=2, max_fee_per_gas=max_fee_per_gas, max_priority_fee_per_gas=max_priority_fee_per_gas)

    @property
    def price_per_gas(self) -> int:
        return self.gas_price if self.tx_type == 0 else self.max_fee_per_gas

    def estimate_cost(self, gas_limit: int) -> int:
        return self.price_per_gas * gas_limit

    def to_tx_fields(self) -> dict:
        if self.tx_type == 2:
            return {
                'type': 2,
                'maxFeePerGas': self.max_fee_per_gas,
                'maxPriorityFeePerGas': self.max_priority_fee_per_gas,
            }
        return {'gasPrice': self.gas_price}


@dataclass(frozen=True)
class SwapQuote:
    route_data: str
    estimated_out: str
    approval_target: Optional[str]
    gas_limit: Optional[int]


@dataclass(frozen=True)
class SwapCall:
    to: str
    data: str
    value: int = 0
    gas_limit: Optional[int] = None
    approval_target: Optional[str] = None


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: int
    block_number: Optional[int]
    gas_used: int
    effective_gas_price: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.block_number is not None


@dataclass(frozen=True)
class WalletSnapshot:
    index: int
    address: str
    native_balance: Decimal
    token_balances: Dict[str, Decimal]
    is_selected: bool = False
