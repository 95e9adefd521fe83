"""
Trading Orchestrator - wires the stream, signal engine and order manager.

Every price tick goes through one asyncio.Queue consumed by a single worker,
so a tick's remote calls (balance, open orders, place, balance again) all
finish before the next tick's decision starts. Two overlapping decisions
would otherwise size against the same free balance. Operator cancels from
the control API take the same lock as a tick's order work, so they never
interleave with placement or reconciliation.
"""

import asyncio
import logging
import traceback
from typing import Optional

from config import BotConfig
from exchange import MexcClient
from market_stream import MexcTradeStream
from notifier import Notifier, LogNotifier, create_notifier
from orders import OrderManager
from retry import RetryConfig, RetryExecutor
from signal_engine import SignalEngine, SignalType
from sizing import PositionSizer
from trading_switch import TradingSwitch

logger = logging.getLogger(__name__)


class TradingOrchestrator:
    """
    One trading pair: one signal engine, one order manager, one stream.
    No hidden logic - explicit control flow.
    """

    def __init__(
        self,
        config: BotConfig,
        signal_engine: SignalEngine,
        order_manager: OrderManager,
        notifier: Optional[Notifier] = None,
        exchange=None,
        retry: Optional[RetryExecutor] = None,
        switch: Optional[TradingSwitch] = None,
    ):
        self.config = config
        self.signal_engine = signal_engine
        self.order_manager = order_manager
        self.notifier = notifier or LogNotifier()
        self.exchange = exchange
        self.retry = retry or RetryExecutor()
        self.switch = switch or TradingSwitch(enabled=config.trading_enabled)
        self.switch.set_on_change(self._on_switch_change)

        self.stream: Optional[MexcTradeStream] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        # Held by a tick and by control-channel order mutations
        self._lock = asyncio.Lock()
        self._backlog_reported = False
        self._worker_task: Optional[asyncio.Task] = None
        self._stream_task: Optional[asyncio.Task] = None
        self.ticks_processed = 0
        self.tick_errors = 0

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def attach_stream(self, stream: MexcTradeStream):
        self.stream = stream

    async def start(self):
        """Start the tick worker and the market stream"""
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._worker())
        if self.stream and (self._stream_task is None or self._stream_task.done()):
            self._stream_task = asyncio.create_task(self.stream.run())

        logger.info(f"Trader started for {self.config.pair}")
        await self.notifier.notify(f"Bot started for {self.config.pair}")

    async def stop(self):
        """Stop taking ticks, drain queued ones, then stop the worker"""
        if self.stream:
            await self.stream.stop()
        if self._stream_task:
            self._stream_task.cancel()
            try:
                await self._stream_task
            except asyncio.CancelledError:
                pass

        if self._worker_task and not self._worker_task.done():
            await self._queue.put(None)
            await self._worker_task

        if self.exchange is not None and hasattr(self.exchange, "close"):
            await self.exchange.close()

        logger.info("Trader stopped")

    # -------------------------------------------------------------------------
    # TICK PIPELINE
    # -------------------------------------------------------------------------

    async def submit_price(self, price: float):
        """Stream callback: enqueue the tick and return immediately"""
        self._queue.put_nowait(price)
        await self._check_backlog()

    async def _check_backlog(self):
        """Report once when queued ticks pass the threshold, again after it drains"""
        backlog = self._queue.qsize()
        threshold = self.config.tick_backlog_warning
        if backlog < threshold:
            self._backlog_reported = False
            return
        if self._backlog_reported:
            return

        self._backlog_reported = True
        logger.warning(f"Tick backlog at {backlog} (threshold {threshold}), decisions are lagging the stream")
        await self.notifier.notify(f"Tick backlog at {backlog}: trading decisions are lagging the market")

    async def _worker(self):
        while True:
            price = await self._queue.get()
            try:
                if price is None:
                    return
                await self.handle_price(price)
            finally:
                self._queue.task_done()

    async def handle_price(self, price: float):
        """Process one tick completely. Never raises."""
        self.ticks_processed += 1
        signal = self.signal_engine.on_new_price(price)

        if not self.switch.enabled:
            return

        async with self._lock:
            try:
                if signal == SignalType.BUY:
                    await self.order_manager.place_buy(price)
                elif signal == SignalType.SELL:
                    await self.order_manager.place_sell(price)
            except Exception as e:
                await self._report_tick_error(f"{signal.value} at {price}", e)

            try:
                await self.order_manager.reconcile()
            except Exception as e:
                await self._report_tick_error("reconcile", e)

    async def _report_tick_error(self, step: str, error: Exception):
        self.tick_errors += 1
        logger.error(f"Tick failed during {step}: {type(error).__name__}: {error}")
        logger.debug(traceback.format_exc())
        await self.notifier.notify(f"Error during {step}: {error}")

    # -------------------------------------------------------------------------
    # CONTROL CHANNEL
    # -------------------------------------------------------------------------

    async def enable_trading(self, changed_by: str = "user") -> bool:
        return await self.switch.set_enabled(True, changed_by)

    async def disable_trading(self, changed_by: str = "user") -> bool:
        return await self.switch.set_enabled(False, changed_by)

    async def _on_switch_change(self, enabled: bool, changed_by: str):
        await self.notifier.notify(f"Trading {'started' if enabled else 'stopped'} by {changed_by}")

    async def cancel_order(self, order_id: str) -> bool:
        """Operator cancel; waits for any tick in progress to finish"""
        async with self._lock:
            return await self.order_manager.cancel(order_id, reason="operator")

    async def get_balances(self) -> dict[str, float]:
        return await self.retry.execute(self.exchange.get_balances, name="balances")

    def get_status(self) -> dict:
        return {
            "pair": self.config.pair,
            **self.switch.get_status(),
            "queued_ticks": self._queue.qsize(),
            "ticks_processed": self.ticks_processed,
            "tick_errors": self.tick_errors,
            "signal": self.signal_engine.get_status(),
            "orders": self.order_manager.get_status(),
            "stream": self.stream.get_status() if self.stream else None,
            "config": self.config.to_dict(),
        }


def build_orchestrator(config: BotConfig) -> TradingOrchestrator:
    """Wire real collaborators from config"""
    notifier = create_notifier(config.telegram_bot_token, config.telegram_chat_id)
    retry = RetryExecutor(RetryConfig.from_bot_config(config), on_failure=notifier.notify)
    exchange = MexcClient(config.api_key, config.api_secret, recv_window_ms=config.recv_window_ms)

    signal_engine = SignalEngine.from_config(config)
    sizer = PositionSizer(exchange, retry, signal_engine, config)
    order_manager = OrderManager(exchange, retry, sizer, config, notifier=notifier)

    orchestrator = TradingOrchestrator(
        config,
        signal_engine,
        order_manager,
        notifier=notifier,
        exchange=exchange,
        retry=retry,
    )
    orchestrator.attach_stream(MexcTradeStream(
        config.pair,
        on_price=orchestrator.submit_price,
        notifier=notifier,
        config=config,
    ))
    return orchestrator
