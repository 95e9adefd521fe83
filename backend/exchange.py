"""
MEXC spot REST client.

Signed endpoints use an HMAC-SHA256 signature of the query string with the
API secret, plus `timestamp` and `recvWindow` parameters, and the API key in
the X-MEXC-APIKEY header.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional
from urllib.parse import urlencode

import aiohttp

from config import MexcAPI

logger = logging.getLogger(__name__)


class ExchangeError(Exception):
    """Error response from the exchange REST API"""

    def __init__(self, status: int, code: Optional[int] = None, message: str = ""):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"HTTP {status} (code {code}): {message}")


def sign(secret: str, query: str) -> str:
    """Hex HMAC-SHA256 of the query string"""
    return hmac.new(secret.encode(), query.encode(), hashlib.sha256).hexdigest()


class MexcClient:
    """Minimal signed client for the endpoints the trader needs"""

    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        base_url: str = MexcAPI.REST,
        recv_window_ms: int = 5000,
        timeout_sec: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key or ""
        self.api_secret = api_secret or ""
        self.base_url = base_url.rstrip("/")
        self.recv_window_ms = recv_window_ms
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    def _signed_query(self, params: dict) -> str:
        params = {k: v for k, v in params.items() if v is not None}
        params["recvWindow"] = self.recv_window_ms
        params["timestamp"] = int(time.time() * 1000)
        query = urlencode(params)
        return f"{query}&signature={sign(self.api_secret, query)}"

    async def _request(self, method: str, path: str, params: Optional[dict] = None):
        session = await self._get_session()
        url = f"{self.base_url}{path}?{self._signed_query(params or {})}"
        headers = {"X-MEXC-APIKEY": self.api_key, "Content-Type": "application/json"}

        async with session.request(method, url, headers=headers) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError:
                data = None

            if resp.status >= 400:
                code = data.get("code") if isinstance(data, dict) else None
                msg = data.get("msg", "") if isinstance(data, dict) else await resp.text()
                raise ExchangeError(resp.status, code, msg)

            # Some errors come back as 200 with a non-success code
            if isinstance(data, dict) and data.get("code") not in (None, 0, 200):
                raise ExchangeError(resp.status, data.get("code"), data.get("msg", ""))

            return data

    # -------------------------------------------------------------------------
    # ACCOUNT
    # -------------------------------------------------------------------------

    async def account_info(self) -> dict:
        return await self._request("GET", MexcAPI.ACCOUNT)

    async def get_free_balance(self, asset: str) -> float:
        """Free balance of one asset, 0 if the account holds none"""
        account = await self.account_info()
        for balance in account.get("balances", []):
            if balance.get("asset") == asset:
                return float(balance.get("free", 0))
        return 0.0

    async def get_balances(self) -> dict[str, float]:
        """All non-zero free balances keyed by asset"""
        account = await self.account_info()
        balances = {}
        for balance in account.get("balances", []):
            free = float(balance.get("free", 0))
            if free > 0:
                balances[balance["asset"]] = free
        return balances

    # -------------------------------------------------------------------------
    # ORDERS
    # -------------------------------------------------------------------------

    async def open_orders(self, symbol: str) -> list[dict]:
        return await self._request("GET", MexcAPI.OPEN_ORDERS, {"symbol": symbol})

    async def new_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        quantity: str,
        price: Optional[str] = None,
        time_in_force: Optional[str] = None,
    ) -> dict:
        params = {
            "symbol": symbol,
            "side": side,
            "type": order_type,
            "quantity": quantity,
            "price": price,
            "timeInForce": time_in_force,
        }
        return await self._request("POST", MexcAPI.ORDER, params)

    async def cancel_order(self, symbol: str, order_id: str) -> dict:
        return await self._request("DELETE", MexcAPI.ORDER, {"symbol": symbol, "orderId": order_id})
