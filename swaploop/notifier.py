"""Outbound notifications: Discord, Telegram, LINE.

One channel is selected at construction time by NOTIFICATION_SERVICE:
    0 = disabled, 1 = Discord webhook, 2 = Telegram bot, 3 = LINE Notify

Delivery is best-effort. notify() never raises; failures are logged.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from swaploop.config import NotificationConfig, NotificationService

log = logging.getLogger("swaploop.notifier")

MESSAGE_PREFIX = "[Auto Swap]"
BOT_USERNAME = "Aptos Swap Bot"


class Notifier(ABC):
    """A notification channel. notify() never raises."""

    name = "notifier"

    @abstractmethod
    async def notify(self, message: str) -> None:
        ...


class WebhookNotifier(Notifier):
    """HTTP-delivered channel. Subclasses build the request in _send()."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def _send(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        ...

    async def notify(self, message: str) -> None:
        if not self.is_configured():
            log.warning("%s notifications enabled but credentials missing; skipping", self.name)
            return
        text = f"{MESSAGE_PREFIX} {message}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await self._send(client, text)
                response.raise_for_status()
        except Exception as e:
            log.warning("%s notification failed: %s", self.name, e)
            return
        log.debug("%s notification sent", self.name)


class DisabledNotifier(Notifier):
    """No channel configured. Logs and drops every message."""

    name = "disabled"

    def __init__(self, reason: str = "NOTIFICATION_SERVICE=0"):
        self.reason = reason

    async def notify(self, message: str) -> None:
        log.warning("Notifications disabled (%s); dropping: %s", self.reason, message[:80])


class DiscordNotifier(WebhookNotifier):
    name = "discord"

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.webhook_url = webhook_url

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def _send(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            self.webhook_url,
            json={"content": text, "username": BOT_USERNAME},
        )


class TelegramNotifier(WebhookNotifier):
    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.bot_token = bot_token
        self.chat_id = chat_id

    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def _send(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            f"https://api.telegram.org/bot{self.bot_token}/sendMessage",
            json={"chat_id": self.chat_id, "text": text, "parse_mode": "Markdown"},
        )


class LineNotifier(WebhookNotifier):
    name = "line"

    def __init__(self, token: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.token = token

    def is_configured(self) -> bool:
        return bool(self.token)

    async def _send(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            "https://notify-api.line.me/api/notify",
            headers={"Authorization": f"Bearer {self.token}"},
            data={"message": text},
        )


def build_notifier(config: NotificationConfig) -> Notifier:
    """Pick the channel for this run."""
    if config.service == NotificationService.DISCORD:
        return DiscordNotifier(config.discord_webhook_url)
    if config.service == NotificationService.TELEGRAM:
        return TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    if config.service == NotificationService.LINE:
        return LineNotifier(config.line_notify_token)
    if config.service != NotificationService.DISABLED:
        log.warning("Unknown NOTIFICATION_SERVICE=%s; notifications disabled", config.service)
        return DisabledNotifier(reason=f"unknown service {config.service}")
    return DisabledNotifier()
