"""
Pytest fixtures for the test suite.
"""
import pytest
import sys
import os
from unittest.mock import MagicMock, AsyncMock

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import BotConfig
from notifier import Notifier
from orders import OrderManager
from retry import RetryConfig, RetryExecutor
from signal_engine import SignalEngine
from sizing import PositionSizer


class RecordingNotifier(Notifier):
    """Keeps every notification for assertions."""

    def __init__(self):
        self.messages: list[str] = []

    async def send(self, text: str) -> None:
        self.messages.append(text)

    def matching(self, fragment: str) -> list[str]:
        return [m for m in self.messages if fragment in m]


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def bot_config(tmp_path):
    """Config with a window that fills at the long SMA length."""
    return BotConfig(
        symbol="KAS",
        quote_asset="USDT",
        history_length=18,
        retry_delay_sec=2.0,
        data_dir=str(tmp_path),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_sleep():
    return AsyncMock()


@pytest.fixture
def retry_executor(fake_sleep, notifier):
    return RetryExecutor(RetryConfig(max_retries=3, delay=2.0), on_failure=notifier.notify, sleep=fake_sleep)


@pytest.fixture
def mock_exchange():
    """Exchange client with a 100-unit balance and no open orders."""
    exchange = MagicMock()
    exchange.get_free_balance = AsyncMock(return_value=100.0)
    exchange.get_balances = AsyncMock(return_value={"USDT": 100.0, "KAS": 250.0})
    exchange.open_orders = AsyncMock(return_value=[])
    exchange.new_order = AsyncMock(return_value={"orderId": "1001"})
    exchange.cancel_order = AsyncMock(return_value={"orderId": "1001", "status": "CANCELED"})
    exchange.close = AsyncMock()
    return exchange


@pytest.fixture
def signal_engine(bot_config):
    return SignalEngine.from_config(bot_config)


@pytest.fixture
def sizer(mock_exchange, retry_executor, signal_engine, bot_config):
    return PositionSizer(mock_exchange, retry_executor, signal_engine, bot_config)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def order_manager(mock_exchange, retry_executor, sizer, bot_config, notifier, clock):
    return OrderManager(
        mock_exchange,
        retry_executor,
        sizer,
        bot_config,
        notifier=notifier,
        clock=clock,
        persist=False,
    )


def rising_then(last: float) -> list[float]:
    """17 prices climbing 100..116 followed by `last`."""
    return [100.0 + i for i in range(17)] + [last]


def falling_then(last: float) -> list[float]:
    """17 prices sliding 116..100 followed by `last`."""
    return [116.0 - i for i in range(17)] + [last]
