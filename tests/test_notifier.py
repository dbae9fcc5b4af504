"""Tests for outbound notifications.

Notifications are best-effort: delivery failures must never reach the
swap loop.
"""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from swaploop.config import NotificationConfig
from swaploop.notifier import (
    BOT_USERNAME,
    DisabledNotifier,
    DiscordNotifier,
    LineNotifier,
    Notifier,
    TelegramNotifier,
    WebhookNotifier,
    build_notifier,
)


def _patched_client(post_side_effect=None):
    """Patch httpx.AsyncClient in the notifier module; returns (patcher, client)."""
    client = AsyncMock()
    client.post = AsyncMock(return_value=MagicMock(), side_effect=post_side_effect)
    client_cls = MagicMock()
    client_cls.return_value.__aenter__.return_value = client
    client_cls.return_value.__aexit__.return_value = False
    return patch("swaploop.notifier.httpx.AsyncClient", client_cls), client


class TestBuildNotifier:

    @pytest.mark.parametrize("service, expected", [
        (0, DisabledNotifier),
        (1, DiscordNotifier),
        (2, TelegramNotifier),
        (3, LineNotifier),
        (9, DisabledNotifier),
    ])
    def test_channel_selection(self, service, expected):
        notifier = build_notifier(NotificationConfig(service=service))
        assert type(notifier) is expected


class TestChannels:

    @pytest.mark.asyncio
    async def test_discord_payload(self):
        patcher, client = _patched_client()
        with patcher:
            await DiscordNotifier("https://discord.test/webhook").notify("hello")

        client.post.assert_awaited_once()
        url = client.post.await_args.args[0]
        body = client.post.await_args.kwargs["json"]
        assert url == "https://discord.test/webhook"
        assert body == {"content": "[Auto Swap] hello", "username": BOT_USERNAME}

    @pytest.mark.asyncio
    async def test_telegram_payload(self):
        patcher, client = _patched_client()
        with patcher:
            await TelegramNotifier("123:ABC", "-100987").notify("done")

        url = client.post.await_args.args[0]
        body = client.post.await_args.kwargs["json"]
        assert url == "https://api.telegram.org/bot123:ABC/sendMessage"
        assert body["chat_id"] == "-100987"
        assert body["text"] == "[Auto Swap] done"
        assert body["parse_mode"] == "Markdown"

    @pytest.mark.asyncio
    async def test_line_payload(self):
        patcher, client = _patched_client()
        with patcher:
            await LineNotifier("line-token").notify("hi")

        kwargs = client.post.await_args.kwargs
        assert client.post.await_args.args[0] == "https://notify-api.line.me/api/notify"
        assert kwargs["headers"] == {"Authorization": "Bearer line-token"}
        assert kwargs["data"] == {"message": "[Auto Swap] hi"}


class TestBestEffort:

    @pytest.mark.asyncio
    async def test_network_error_swallowed(self, caplog):
        patcher, _ = _patched_client(post_side_effect=httpx.ConnectError("refused"))
        with patcher, caplog.at_level(logging.WARNING, logger="swaploop.notifier"):
            await DiscordNotifier("https://discord.test/webhook").notify("hello")

        assert "discord notification failed" in caplog.text

    @pytest.mark.asyncio
    async def test_http_error_status_swallowed(self, caplog):
        response = MagicMock()
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "429 Too Many Requests", request=MagicMock(), response=MagicMock()
        )
        patcher, client = _patched_client()
        client.post.return_value = response
        with patcher, caplog.at_level(logging.WARNING, logger="swaploop.notifier"):
            await TelegramNotifier("123:ABC", "-100").notify("hello")

        assert "telegram notification failed" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("notifier", [
        DiscordNotifier(""),
        TelegramNotifier("123:ABC", ""),
        TelegramNotifier("", "-100"),
        LineNotifier(""),
    ])
    async def test_missing_credentials_skip(self, notifier, caplog):
        patcher, client = _patched_client()
        with patcher, caplog.at_level(logging.WARNING, logger="swaploop.notifier"):
            await notifier.notify("hello")

        client.post.assert_not_awaited()
        assert "credentials missing" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled_drops_message(self, caplog):
        patcher, client = _patched_client()
        with patcher, caplog.at_level(logging.WARNING, logger="swaploop.notifier"):
            await DisabledNotifier().notify("hello")

        client.post.assert_not_awaited()
        assert "disabled" in caplog.text


class TestChannelContract:

    def test_base_classes_are_abstract(self):
        with pytest.raises(TypeError):
            Notifier()
        with pytest.raises(TypeError):
            WebhookNotifier()

    def test_channel_without_send_cannot_be_built(self):
        class HalfChannel(WebhookNotifier):
            name = "half"

            def is_configured(self) -> bool:
                return True

        with pytest.raises(TypeError):
            HalfChannel()

    @pytest.mark.parametrize("notifier", [
        DisabledNotifier(),
        DiscordNotifier("https://discord.test/webhook"),
        TelegramNotifier("123:ABC", "-100"),
        LineNotifier("line-token"),
    ])
    def test_every_channel_is_a_notifier(self, notifier):
        assert isinstance(notifier, Notifier)
