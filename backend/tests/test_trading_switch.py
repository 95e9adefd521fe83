"""
Tests for the Trading Switch (trading_switch.py).

Tests cover:
- Safe default
- Transitions and change reporting
- Change callbacks
- Status reporting
"""
import pytest
from unittest.mock import AsyncMock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from trading_switch import TradingSwitch


class TestTradingSwitchInit:
    """Tests for TradingSwitch initialization."""

    def test_default_is_off(self):
        """Trading must be switched on explicitly."""
        switch = TradingSwitch()
        assert switch.enabled is False

    def test_changed_by_defaults_to_system(self):
        assert TradingSwitch().get_status()["changed_by"] == "system"


class TestTransitions:
    """Tests for set_enabled."""

    @pytest.mark.asyncio
    async def test_enable(self):
        switch = TradingSwitch()
        assert await switch.set_enabled(True, changed_by="api") is True
        assert switch.enabled is True
        assert switch.get_status()["changed_by"] == "api"

    @pytest.mark.asyncio
    async def test_same_value_is_not_a_change(self):
        switch = TradingSwitch(enabled=True)
        assert await switch.set_enabled(True) is False

    @pytest.mark.asyncio
    async def test_callback_receives_change(self):
        switch = TradingSwitch()
        callback = AsyncMock()
        switch.set_on_change(callback)

        await switch.set_enabled(True, changed_by="api")
        await switch.set_enabled(True, changed_by="api")

        callback.assert_awaited_once_with(True, "api")

    @pytest.mark.asyncio
    async def test_callback_error_does_not_block_change(self):
        switch = TradingSwitch()
        switch.set_on_change(AsyncMock(side_effect=RuntimeError("boom")))

        assert await switch.set_enabled(True) is True
        assert switch.enabled is True


class TestStatus:
    """Tests for get_status."""

    def test_status_fields(self):
        status = TradingSwitch(enabled=True).get_status()
        assert status["trading_enabled"] is True
        assert isinstance(status["changed_at"], int)
