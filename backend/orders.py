"""
Order lifecycle management.

Places limit orders sized by PositionSizer, tracks them until they resolve,
detects fills by diffing against the exchange's open-order listing, cancels
orders that sit open too long and keeps the realized-profit tally that the
sizer holds back from trading capital.

Active orders and realized profit are saved to JSON so a restart keeps
reconciling the same orders.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Optional

from config import BotConfig
from notifier import Notifier, LogNotifier
from retry import RetryExecutor
from sizing import PositionSizer

logger = logging.getLogger(__name__)

CANCELED_STATUSES = {"CANCELED", "PARTIALLY_CANCELED"}
HISTORY_LIMIT = 100


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(Enum):
    OPEN = "open"
    FILLED = "filled"
    CANCELED = "canceled"


@dataclass
class Order:
    """An order placed by this trader"""
    id: str
    side: OrderSide
    quantity: float
    price: float
    placed_at: float
    status: OrderStatus = OrderStatus.OPEN
    resolved_at: Optional[float] = None

    @property
    def notional(self) -> float:
        return self.quantity * self.price

    def age(self, now: float) -> float:
        return now - self.placed_at

    def to_dict(self) -> dict:
        d = asdict(self)
        d["side"] = self.side.value
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        data = dict(data)
        data["side"] = OrderSide(data["side"])
        data["status"] = OrderStatus(data.get("status", "open"))
        return cls(**data)


class OrderManager:
    """Sole owner of this trader's orders"""

    def __init__(
        self,
        exchange,
        retry: RetryExecutor,
        sizer: PositionSizer,
        config: BotConfig,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
        persist: bool = True,
    ):
        self.exchange = exchange
        self.retry = retry
        self.sizer = sizer
        self.config = config
        self.notifier = notifier or LogNotifier()
        self.clock = clock
        self.persist = persist

        self.active_orders: dict[str, Order] = {}
        self.order_history: list[Order] = []
        self.realized_profit = 0.0

        if self.persist:
            self._load_state()

    # -------------------------------------------------------------------------
    # PLACEMENT
    # -------------------------------------------------------------------------

    async def place_buy(self, price: float) -> Optional[Order]:
        return await self._place(OrderSide.BUY, price)

    async def place_sell(self, price: float) -> Optional[Order]:
        return await self._place(OrderSide.SELL, price)

    async def _place(self, side: OrderSide, price: float) -> Optional[Order]:
        # Buys spend the quote asset, sells spend the base asset
        funding_asset = self.config.quote_asset if side == OrderSide.BUY else self.config.symbol
        quantity = await self.sizer.size(funding_asset, price, self.realized_profit)
        if quantity <= 0:
            logger.info(f"{side.value} skipped at {price}: nothing to trade")
            return None

        quote_before = None
        if side == OrderSide.SELL:
            quote_before = await self._free_quote()

        qty_str = f"{quantity:.{self.config.quantity_precision}f}"
        price_str = f"{price:.{self.config.price_precision}f}"
        response = await self.retry.execute(
            lambda: self.exchange.new_order(
                self.config.pair,
                side.value,
                self.config.order_type,
                qty_str,
                price_str,
                self.config.time_in_force,
            ),
            name=f"{side.value.lower()} order",
        )

        order = Order(
            id=str(response["orderId"]),
            side=side,
            quantity=float(qty_str),
            price=float(price_str),
            placed_at=self.clock(),
        )
        self.active_orders[order.id] = order
        self._save_state()

        logger.info(
            f"ORDER PLACED: {order.id} {side.value} {qty_str} {self.config.symbol} @ {price_str} "
            f"= {order.notional:.4f} {self.config.quote_asset}"
        )
        await self.notifier.notify(
            f"{side.value} order {order.id}: {qty_str} {self.config.symbol} @ {price_str} "
            f"{self.config.quote_asset} (notional {order.notional:.4f})"
        )

        if quote_before is not None:
            quote_after = await self._free_quote()
            delta = quote_after - quote_before
            # Approximation: any other quote balance movement lands here too
            if delta > 0:
                self.realized_profit += delta
                logger.info(f"Realized profit +{delta:.4f} -> {self.realized_profit:.4f} {self.config.quote_asset}")
                self._save_state()

        return order

    async def _free_quote(self) -> float:
        asset = self.config.quote_asset
        return await self.retry.execute(
            lambda: self.exchange.get_free_balance(asset), name=f"balance {asset}"
        )

    # -------------------------------------------------------------------------
    # CANCELLATION
    # -------------------------------------------------------------------------

    async def cancel(self, order_id: str, reason: str = "operator") -> bool:
        """Cancel an order; True once the exchange confirms it"""
        order_id = str(order_id)
        response = await self.retry.execute(
            lambda: self.exchange.cancel_order(self.config.pair, order_id),
            name=f"cancel {order_id}",
        )

        status = (response or {}).get("status", "CANCELED")
        if status not in CANCELED_STATUSES:
            logger.warning(f"Cancel of {order_id} not confirmed: status {status}")
            return False

        order = self.active_orders.pop(order_id, None)
        if order:
            self._resolve(order, OrderStatus.CANCELED)

        logger.info(f"ORDER CANCELED: {order_id} ({reason})")
        await self.notifier.notify(f"Order {order_id} canceled ({reason})")
        self._save_state()
        return True

    # -------------------------------------------------------------------------
    # RECONCILIATION
    # -------------------------------------------------------------------------

    async def reconcile(self, open_orders: Optional[list[dict]] = None) -> dict:
        """
        Diff active orders against the exchange listing.

        Orders missing from the listing are filled. Orders still open past
        the staleness threshold are canceled.
        """
        if not self.active_orders:
            return {"filled": [], "canceled": []}

        if open_orders is None:
            open_orders = await self.retry.execute(
                lambda: self.exchange.open_orders(self.config.pair), name="open orders"
            )

        live_ids = {str(o.get("orderId")) for o in open_orders}
        filled = []
        for order_id in [oid for oid in self.active_orders if oid not in live_ids]:
            order = self.active_orders.pop(order_id, None)
            if order is None:
                # Resolved by a cancel while a notification was in flight
                continue
            self._resolve(order, OrderStatus.FILLED)
            filled.append(order_id)
            logger.info(f"ORDER FILLED: {order_id} {order.side.value} {order.quantity} @ {order.price}")
            await self.notifier.notify(
                f"{order.side.value} order {order_id} filled: {order.quantity} {self.config.symbol} "
                f"@ {order.price} {self.config.quote_asset}"
            )
        if filled:
            self._save_state()

        now = self.clock()
        stale = [o.id for o in self.active_orders.values() if o.age(now) >= self.config.stale_order_sec]
        canceled = []
        for order_id in stale:
            if order_id not in self.active_orders:
                continue
            try:
                if await self.cancel(order_id, reason="stale"):
                    canceled.append(order_id)
            except Exception as e:
                logger.error(f"Failed to cancel stale order {order_id}: {e}")
                await self.notifier.notify(f"Failed to cancel stale order {order_id}: {e}")

        return {"filled": filled, "canceled": canceled}

    def _resolve(self, order: Order, status: OrderStatus):
        order.status = status
        order.resolved_at = self.clock()
        self.order_history.append(order)
        if len(self.order_history) > HISTORY_LIMIT:
            self.order_history = self.order_history[-HISTORY_LIMIT:]

    # -------------------------------------------------------------------------
    # PERSISTENCE
    # -------------------------------------------------------------------------

    def _get_state_path(self) -> str:
        return os.path.join(self.config.data_dir, "trader_state.json")

    def _save_state(self):
        """Save state to JSON"""
        if not self.persist:
            return

        state = {
            "pair": self.config.pair,
            "realized_profit": self.realized_profit,
            "active_orders": [o.to_dict() for o in self.active_orders.values()],
            "order_history": [o.to_dict() for o in self.order_history],
        }

        try:
            with open(self._get_state_path(), "w") as f:
                json.dump(state, f, indent=2)
        except Exception as e:
            logger.error(f"Failed to save state: {e}")

    def _load_state(self):
        """Load state from JSON"""
        try:
            path = self._get_state_path()
            if not os.path.exists(path):
                return

            with open(path, "r") as f:
                state = json.load(f)

            if state.get("pair") not in (None, self.config.pair):
                logger.warning(f"Ignoring state for {state.get('pair')}, trading {self.config.pair}")
                return

            self.realized_profit = float(state.get("realized_profit", 0.0))
            for o_data in state.get("active_orders", []):
                order = Order.from_dict(o_data)
                self.active_orders[order.id] = order
            for o_data in state.get("order_history", []):
                self.order_history.append(Order.from_dict(o_data))

            logger.info(
                f"Loaded state: {len(self.active_orders)} active orders, "
                f"realized profit {self.realized_profit:.4f}"
            )

        except Exception as e:
            logger.error(f"Failed to load state: {e}")

    # -------------------------------------------------------------------------
    # API METHODS
    # -------------------------------------------------------------------------

    def get_orders(self) -> list[dict]:
        return [o.to_dict() for o in self.active_orders.values()]

    def get_order_history(self, limit: int = 50) -> list[dict]:
        return [o.to_dict() for o in self.order_history[-limit:]]

    def get_status(self) -> dict:
        return {
            "active_orders": len(self.active_orders),
            "realized_profit": self.realized_profit,
            "resolved_orders": len(self.order_history),
        }
