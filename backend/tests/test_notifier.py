"""
Tests for notification adapters (notifier.py).

Tests cover:
- Telegram request format
- Send failures never reach the caller
- Channel selection from config
"""
import pytest
from unittest.mock import patch, MagicMock, AsyncMock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from notifier import LogNotifier, Notifier, TelegramNotifier, create_notifier


def mock_http_client(status_code=200, side_effect=None):
    """Patchable stand-in for httpx.AsyncClient used as a context manager."""
    client = MagicMock()
    client.post = AsyncMock(
        return_value=MagicMock(status_code=status_code, text="err"),
        side_effect=side_effect,
    )
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestTelegramNotifier:
    """Tests for TelegramNotifier."""

    @pytest.mark.asyncio
    async def test_posts_to_chat(self):
        client = mock_http_client()
        with patch("notifier.httpx.AsyncClient", return_value=client):
            await TelegramNotifier("TOKEN", "42").notify("BUY order 1001")

        url = client.post.await_args.args[0]
        payload = client.post.await_args.kwargs["json"]
        assert url == "https://api.telegram.org/botTOKEN/sendMessage"
        assert payload["chat_id"] == "42"
        assert payload["text"] == "BUY order 1001"

    @pytest.mark.asyncio
    async def test_transport_error_swallowed(self):
        client = mock_http_client(side_effect=ConnectionError("no route"))
        with patch("notifier.httpx.AsyncClient", return_value=client):
            await TelegramNotifier("TOKEN", "42").notify("hello")

    @pytest.mark.asyncio
    async def test_non_200_does_not_raise(self):
        client = mock_http_client(status_code=429)
        with patch("notifier.httpx.AsyncClient", return_value=client):
            await TelegramNotifier("TOKEN", "42").notify("hello")
        client.post.assert_awaited_once()


class TestNotifierBase:
    """Tests for the notify wrapper."""

    @pytest.mark.asyncio
    async def test_send_errors_never_propagate(self):
        class Broken(Notifier):
            async def send(self, text):
                raise RuntimeError("boom")

        await Broken().notify("x")

    @pytest.mark.asyncio
    async def test_log_notifier(self, caplog):
        with caplog.at_level("INFO"):
            await LogNotifier().notify("Bot started for KASUSDT")
        assert "Bot started for KASUSDT" in caplog.text


class TestCreateNotifier:
    """Tests for create_notifier."""

    def test_telegram_when_configured(self):
        assert isinstance(create_notifier("TOKEN", "42"), TelegramNotifier)

    @pytest.mark.parametrize("token,chat_id", [(None, None), ("TOKEN", None), (None, "42")])
    def test_log_fallback(self, token, chat_id):
        assert isinstance(create_notifier(token, chat_id), LogNotifier)
