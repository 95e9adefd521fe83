"""
Position sizing.

Turns the free balance of an asset into an order quantity, scaled by the
current volatility thresholds. Balance and open orders are fetched fresh on
every call.
"""

import logging
import math

from config import BotConfig
from retry import RetryExecutor

logger = logging.getLogger(__name__)


def reserved_quantity(open_orders: list[dict]) -> float:
    """Unfilled quantity still committed to open orders"""
    return sum(
        float(o.get("origQty", 0)) - float(o.get("executedQty", 0))
        for o in open_orders
    )


def floor_to(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    # Epsilon keeps 15.999999999999998 from flooring to 15.99
    return math.floor(value * factor + 1e-9) / factor


class PositionSizer:
    """Sizes orders from available balance and volatility"""

    def __init__(self, exchange, retry: RetryExecutor, signal_engine, config: BotConfig):
        self.exchange = exchange
        self.retry = retry
        self.signal_engine = signal_engine
        self.config = config

    def risk_factor(self) -> float:
        volatility = max(self.signal_engine.buy_drop_pct, self.signal_engine.sell_rise_pct) / 100
        return self.config.base_risk + self.config.volatility_risk * volatility

    async def size(self, asset: str, price: float, realized_profit: float = 0.0) -> float:
        """
        Quantity to trade at `price` funded from `asset`, or 0.

        Realized profit is measured in the quote asset and is held back from
        quote-funded orders.
        """
        if price <= 0:
            return 0.0

        balance = await self.retry.execute(
            lambda: self.exchange.get_free_balance(asset), name=f"balance {asset}"
        )
        open_orders = await self.retry.execute(
            lambda: self.exchange.open_orders(self.config.pair), name="open orders"
        )

        reserved = reserved_quantity(open_orders)
        available = balance - reserved
        if asset == self.config.quote_asset:
            available -= max(realized_profit, 0.0)

        if available <= 0:
            logger.info(
                f"No capital for {asset}: balance {balance:.4f}, reserved {reserved:.4f}, "
                f"banked profit {realized_profit:.4f}"
            )
            return 0.0

        quantity = floor_to(available * self.risk_factor() / price, self.config.quantity_precision)
        notional = quantity * price

        if quantity <= 0 or notional < self.config.min_notional:
            logger.info(
                f"Order too small: {quantity} @ {price} = {notional:.4f} {self.config.quote_asset} "
                f"(minimum {self.config.min_notional})"
            )
            return 0.0

        return quantity
