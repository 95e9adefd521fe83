"""
Trading Switch - the TradingEnabled flag

Single source of truth for whether signals may act.
Off only stops order activity; price history keeps updating.
"""

import time
import logging
from typing import Optional, Callable, Awaitable

logger = logging.getLogger(__name__)


class TradingSwitch:
    """On/off gate toggled from the control channel."""

    def __init__(self, enabled: bool = False):
        self._enabled = enabled
        self._changed_at: int = int(time.time())
        self._changed_by: str = "system"
        self._on_change: Optional[Callable[[bool, str], Awaitable[None]]] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_on_change(self, callback: Callable[[bool, str], Awaitable[None]]) -> None:
        """Set callback for changes. Callback receives (enabled, changed_by)."""
        self._on_change = callback

    async def set_enabled(self, enabled: bool, changed_by: str = "user") -> bool:
        """
        Turn trading on or off.

        Returns:
            True if the flag changed, False if it already had that value
        """
        if self._enabled == enabled:
            return False

        self._enabled = enabled
        self._changed_at = int(time.time())
        self._changed_by = changed_by

        logger.info(f"Trading {'enabled' if enabled else 'disabled'} by {changed_by}")

        if self._on_change:
            try:
                await self._on_change(enabled, changed_by)
            except Exception as e:
                logger.error(f"Error in trading switch callback: {e}")

        return True

    def get_status(self) -> dict:
        return {
            "trading_enabled": self._enabled,
            "changed_at": self._changed_at,
            "changed_by": self._changed_by,
        }
