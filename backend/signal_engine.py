"""
Price history and volatility signal engine.

Keeps a bounded FIFO window of trade prices. Once the window is full the
buy/sell thresholds are set to half of the window's min-max volatility, and
a short/long SMA crossover combined with the latest tick's price change
decides whether to buy, sell or hold.
"""

import logging
from collections import deque
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SignalType(Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass
class Thresholds:
    """Percent move needed to act: a drop to buy, a rise to sell"""
    buy_drop_pct: float = 0.0
    sell_rise_pct: float = 0.0
    volatility_pct: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class PriceWindow:
    """Bounded, arrival-ordered price buffer. Oldest price is evicted first."""

    def __init__(self, capacity: int):
        if capacity < 2:
            raise ValueError("capacity must be at least 2")
        self.capacity = capacity
        self._prices: deque[float] = deque(maxlen=capacity)

    def append(self, price: float):
        self._prices.append(price)

    def __len__(self) -> int:
        return len(self._prices)

    @property
    def is_full(self) -> bool:
        return len(self._prices) == self.capacity

    def last(self, n: int) -> list[float]:
        if n <= 0:
            return []
        return list(self._prices)[-n:]

    def to_list(self) -> list[float]:
        return list(self._prices)

    def volatility_pct(self) -> float:
        """(max - min) / min * 100 over the whole window"""
        low = min(self._prices)
        high = max(self._prices)
        if low <= 0:
            return 0.0
        return (high - low) / low * 100


def sma(prices: list[float], period: int) -> Optional[float]:
    """Simple moving average of the last `period` prices, None if too few"""
    if period <= 0 or len(prices) < period:
        return None
    return sum(prices[-period:]) / period


class SignalEngine:
    """
    Owns one symbol's price window and derived indicators.

    One instance per trading pair; nothing is shared between instances.
    """

    def __init__(
        self,
        history_length: int = 25,
        short_period: int = 5,
        long_period: int = 18,
    ):
        if short_period >= long_period:
            raise ValueError("short_period must be below long_period")
        if history_length < long_period:
            raise ValueError("history_length must cover long_period")
        self.window = PriceWindow(history_length)
        self.short_period = short_period
        self.long_period = long_period
        self.thresholds = Thresholds()
        self.recompute_count = 0
        self.last_signal = SignalType.HOLD

    @classmethod
    def from_config(cls, config) -> "SignalEngine":
        return cls(
            history_length=config.history_length,
            short_period=config.short_sma_period,
            long_period=config.long_sma_period,
        )

    @property
    def buy_drop_pct(self) -> float:
        return self.thresholds.buy_drop_pct

    @property
    def sell_rise_pct(self) -> float:
        return self.thresholds.sell_rise_pct

    @property
    def short_sma(self) -> Optional[float]:
        return sma(self.window.to_list(), self.short_period)

    @property
    def long_sma(self) -> Optional[float]:
        return sma(self.window.to_list(), self.long_period)

    @property
    def price_change_pct(self) -> Optional[float]:
        """Percent change of the newest price against the one before it"""
        last_two = self.window.last(2)
        if len(last_two) < 2 or last_two[0] == 0:
            return None
        previous, newest = last_two
        return (newest - previous) / previous * 100

    def on_new_price(self, price: float) -> SignalType:
        """Record a trade price and return the resulting signal"""
        self.window.append(price)

        if self.window.is_full:
            self._recompute_thresholds()

        signal = self.evaluate()
        self.last_signal = signal
        return signal

    def _recompute_thresholds(self):
        volatility = self.window.volatility_pct()
        half = volatility / 2
        # Replace as a unit so readers never see one side updated alone
        self.thresholds = Thresholds(
            buy_drop_pct=half,
            sell_rise_pct=half,
            volatility_pct=volatility,
        )
        self.recompute_count += 1
        logger.debug(
            f"Volatility: {volatility:.2f}% | "
            f"buy drop: {half:.2f}% | sell rise: {half:.2f}%"
        )

    def evaluate(self) -> SignalType:
        """Apply the crossover rule to the current window"""
        short = self.short_sma
        long = self.long_sma
        if short is None or long is None:
            return SignalType.HOLD

        change = self.price_change_pct
        if change is None:
            return SignalType.HOLD

        logger.debug(f"SMA short: {short:.4f} | long: {long:.4f} | change: {change:.2f}%")

        if short > long:
            if change <= -self.thresholds.buy_drop_pct:
                return SignalType.BUY
        elif change >= self.thresholds.sell_rise_pct:
            return SignalType.SELL

        return SignalType.HOLD

    def get_status(self) -> dict:
        last = self.window.last(1)
        return {
            "samples": len(self.window),
            "capacity": self.window.capacity,
            "last_price": last[0] if last else None,
            "short_sma": self.short_sma,
            "long_sma": self.long_sma,
            "price_change_pct": self.price_change_pct,
            "thresholds": self.thresholds.to_dict(),
            "last_signal": self.last_signal.value,
        }
