"""
MEXC Trade Stream Client

Connects to wss://wbs.mexc.com/ws, subscribes to the public trade-deal
channel of one pair and forwards the first deal price of every frame.

Frame shape:
    {"c": "spot@public.deals.v3.api@KASUSDT",
     "d": {"deals": [{"p": "0.1234", "v": "100", "S": 1, "t": 1700000000000}],
           "e": "spot@public.deals.v3.api"},
     "s": "KASUSDT", "t": 1700000000000}

The connection is re-established forever with exponential backoff capped at
reconnect_max_sec; there is no terminal failure state.
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

import websockets

from config import BotConfig, MexcAPI
from notifier import Notifier, LogNotifier

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"


# Close codes are only described, they never change the reconnect policy
CLOSE_CODE_REASONS = {
    1000: "normal closure",
    1001: "going away",
    1002: "protocol error",
    1003: "unsupported data",
    1006: "abnormal closure",
}


def describe_close_code(code: Optional[int]) -> str:
    return CLOSE_CODE_REASONS.get(code, "unknown close code")


def reconnect_delay(attempt: int, base: float = 1.0, cap: float = 10.0) -> float:
    """Delay before reconnect attempt N: min(cap, 2**N * base)"""
    return min(cap, (2 ** attempt) * base)


def parse_trade_price(message) -> Optional[float]:
    """Price of the first deal in a frame, None for frames without deals"""
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="ignore")
    if not message or message in ("PING", "PONG"):
        return None

    try:
        data = json.loads(message)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    payload = data.get("d")
    if not isinstance(payload, dict):
        return None

    deals = payload.get("deals") or []
    if not deals:
        return None

    return float(deals[0]["p"])


class MexcTradeStream:
    """
    Owns the streaming connection for one trading pair.

    on_price is awaited for each parsed price and should return quickly
    (the orchestrator only enqueues the tick).
    """

    def __init__(
        self,
        pair: str,
        on_price: Callable[[float], Awaitable[None]],
        notifier: Optional[Notifier] = None,
        config: Optional[BotConfig] = None,
        url: str = MexcAPI.WS_MARKET,
        connect: Optional[Callable] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.pair = pair.upper()
        self.on_price = on_price
        self.notifier = notifier or LogNotifier()
        self.config = config or BotConfig()
        self.url = url
        self._connect = connect or websockets.connect
        self._sleep = sleep or asyncio.sleep

        self.ws = None
        self.running = False
        self.state = ConnectionState.DISCONNECTED
        self.attempt = 0
        self._keepalive_task: Optional[asyncio.Task] = None
        self._last_message_time = 0.0
        self._last_price: Optional[float] = None
        self._price_count = 0

    @property
    def channel(self) -> str:
        return f"{MexcAPI.DEALS_CHANNEL}{self.pair}"

    async def run(self):
        """Connect and keep reconnecting until stop() is called"""
        self.running = True

        while self.running:
            self.state = ConnectionState.CONNECTING
            try:
                code = await self._connect_and_listen()
                reason = describe_close_code(code)
                logger.warning(f"[MEXC-WS] Connection closed with code {code} ({reason})")
                if self.running:
                    await self.notifier.notify(f"Stream connection closed with code {code} ({reason})")

            except websockets.ConnectionClosed as e:
                code = e.rcvd.code if e.rcvd else None
                reason = describe_close_code(code)
                logger.warning(f"[MEXC-WS] Connection closed with code {code} ({reason})")
                await self.notifier.notify(f"Stream connection closed with code {code} ({reason})")

            except asyncio.CancelledError:
                self.state = ConnectionState.DISCONNECTED
                raise

            except Exception as e:
                logger.error(f"[MEXC-WS] Connection error: {type(e).__name__}: {e}")
                await self.notifier.notify(f"Stream error: {e}")

            if not self.running:
                break

            self.state = ConnectionState.RECONNECTING
            self.attempt += 1
            delay = reconnect_delay(self.attempt, self.config.reconnect_base_sec, self.config.reconnect_max_sec)
            logger.info(f"[MEXC-WS] Reconnecting in {delay:.0f}s (attempt {self.attempt})...")
            await self.notifier.notify(f"Reconnecting in {delay:.0f}s (attempt {self.attempt})")
            await self._sleep(delay)

        self.state = ConnectionState.DISCONNECTED

    async def _connect_and_listen(self) -> Optional[int]:
        """One connection lifetime. Returns the close code on a clean close."""
        logger.info(f"[MEXC-WS] Connecting to {self.url}...")

        async with self._connect(
            self.url,
            ping_interval=None,  # Keepalive is sent as an application PING
            ping_timeout=None,
        ) as ws:
            self.ws = ws
            self.attempt = 0
            await self._subscribe(ws)
            self.state = ConnectionState.SUBSCRIBED
            logger.info(f"[MEXC-WS] Connected, subscribed to {self.channel}")
            await self.notifier.notify(f"Stream connected, subscribed to {self.pair} trades")

            self._keepalive_task = asyncio.create_task(self._keepalive_loop(ws))
            try:
                async for message in ws:
                    self._last_message_time = time.time()
                    await self._handle_message(message)
            finally:
                self._keepalive_task.cancel()
                self.ws = None

            return ws.close_code

    async def _subscribe(self, ws):
        await ws.send(json.dumps({
            "method": "SUBSCRIPTION",
            "params": [self.channel],
            "id": 1,
        }))

    async def _keepalive_loop(self, ws):
        """Send PING every keepalive_interval_sec for this connection only"""
        while True:
            await asyncio.sleep(self.config.keepalive_interval_sec)
            try:
                await ws.send(json.dumps({"method": "PING"}))
            except Exception as e:
                logger.debug(f"[MEXC-WS] Keepalive stopped: {e}")
                break

    async def _handle_message(self, message):
        try:
            price = parse_trade_price(message)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[MEXC-WS] Malformed trade frame: {e}")
            return

        if price is None:
            return

        self._last_price = price
        self._price_count += 1
        logger.debug(f"[MEXC-WS] Price: {price}")
        await self.on_price(price)

    async def stop(self):
        """Stop reconnecting and close the current connection"""
        self.running = False
        if self._keepalive_task:
            self._keepalive_task.cancel()
        if self.ws:
            await self.ws.close()
        self.state = ConnectionState.DISCONNECTED

    def get_status(self) -> dict:
        return {
            "state": self.state.value,
            "channel": self.channel,
            "attempt": self.attempt,
            "last_price": self._last_price,
            "prices_received": self._price_count,
            "last_message_age_sec": int(time.time() - self._last_message_time) if self._last_message_time else None,
        }
