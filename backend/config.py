"""
Configuration for the MEXC volatility trader.
Contains exchange endpoints and trading parameters.
"""

import os
from dataclasses import dataclass, asdict
from typing import Optional

# ============================================================================
# API ENDPOINTS
# ============================================================================

class MexcAPI:
    # REST API (spot v3)
    REST = "https://api.mexc.com"

    ACCOUNT = "/api/v3/account"
    OPEN_ORDERS = "/api/v3/openOrders"
    ORDER = "/api/v3/order"

    # WebSocket endpoint (public market streams)
    WS_MARKET = "wss://wbs.mexc.com/ws"

    # Public trade-deal channel, suffixed with the pair (e.g. KASUSDT)
    DEALS_CHANNEL = "spot@public.deals.v3.api@"


# ============================================================================
# TRADING PARAMETERS
# ============================================================================

@dataclass
class BotConfig:
    # Market
    symbol: str = "KAS"
    quote_asset: str = "USDT"

    # Price history / signal
    history_length: int = 25
    short_sma_period: int = 5
    long_sma_period: int = 18

    # Remote call retries (fixed delay, no backoff)
    max_retries: int = 3
    retry_delay_sec: float = 2.0

    # Sizing
    base_risk: float = 0.1
    volatility_risk: float = 0.1
    min_notional: float = 1.0  # In quote asset
    quantity_precision: int = 2
    price_precision: int = 4

    # Orders
    order_type: str = "LIMIT"
    time_in_force: str = "GTC"
    recv_window_ms: int = 5000
    stale_order_sec: float = 20 * 60

    # Stream connection
    keepalive_interval_sec: float = 3.0
    reconnect_base_sec: float = 1.0
    reconnect_max_sec: float = 10.0

    # Tick queue
    tick_backlog_warning: int = 50  # Queued ticks before the lag is reported

    # Control
    trading_enabled: bool = False  # Safe default, enabled from the control API

    # Credentials / channels
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    control_api_key: Optional[str] = None

    # Storage
    data_dir: str = "."
    log_dir: str = "logs"

    @property
    def pair(self) -> str:
        """Exchange symbol for the trading pair, e.g. KASUSDT"""
        return f"{self.symbol}{self.quote_asset}".upper()

    def to_dict(self) -> dict:
        d = asdict(self)
        # Never expose secrets through status endpoints
        for key in ("api_key", "api_secret", "telegram_bot_token", "control_api_key"):
            d[key] = "***" if d[key] else None
        d["pair"] = self.pair
        return d

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load config from environment variables"""
        return cls(
            symbol=os.getenv("TRADING_SYMBOL", "KAS").upper(),
            quote_asset=os.getenv("TRADING_QUOTE", "USDT").upper(),
            history_length=int(os.getenv("HISTORY_LENGTH", "25")),
            trading_enabled=os.getenv("TRADING_ENABLED", "false").lower() in ("1", "true", "yes"),
            api_key=os.getenv("MEXC_API_KEY"),
            api_secret=os.getenv("MEXC_API_SECRET"),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID"),
            control_api_key=os.getenv("API_KEY"),
            data_dir=os.getenv("DATA_DIR", "."),
            log_dir=os.getenv("LOG_DIR", "logs"),
        )
