from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import aiohttp
import discord

from report_watchdog.mastodon.models import Account, Report

__all__ = [
    "NotificationError",
    "WebhookNotifier",
    "build_escalation_embed",
    "build_report_embed",
]

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 15.0
_UNKNOWN_ACCOUNT = "unknown"


class NotificationError(RuntimeError):
    """Raised when the webhook does not accept a notification."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


def _display(account: Account | None) -> str:
    return account.display_name if account is not None else _UNKNOWN_ACCOUNT


def build_report_embed(report: Report) -> discord.Embed:
    embed = discord.Embed(
        title=report.category or None,
        description=report.comment or None,
    )
    embed.add_field(name="Reporter", value=_display(report.account), inline=True)
    embed.add_field(name="Reported account", value=_display(report.target_account), inline=True)
    return embed


def build_escalation_embed(failures: int, error: BaseException) -> discord.Embed:
    embed = discord.Embed(
        title="Moderation reports unavailable",
        description=f"``{type(error).__name__}``: {error}",
        color=discord.Color.orange(),
        timestamp=datetime.now(timezone.utc),
    )
    embed.add_field(name="Consecutive failures", value=str(failures), inline=True)
    return embed


class WebhookNotifier:
    """Posts watchdog alerts to a Discord webhook."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session_factory = session_factory

    async def notify_report(self, report: Report, *, content: str) -> None:
        await self.send(content, build_report_embed(report))

    async def notify_escalation(self, failures: int, error: BaseException, *, content: str) -> None:
        await self.send(content, build_escalation_embed(failures, error))

    async def send(self, content: str, embed: discord.Embed) -> None:
        payload: dict[str, Any] = {
            "content": content,
            "embeds": [embed.to_dict()],
        }

        try:
            async with self._session_factory(timeout=self._timeout) as session:
                async with session.post(self._url, json=payload) as resp:
                    if resp.status != 204:
                        body = await resp.text()
                        raise NotificationError(
                            f"Webhook returned HTTP {resp.status}",
                            status=resp.status,
                            body=body,
                        )
        except asyncio.TimeoutError as exc:
            raise NotificationError(
                f"Webhook timed out after {self._timeout.total or _DEFAULT_TIMEOUT_SECONDS:.0f}s"
            ) from exc
        except aiohttp.ClientError as exc:
            raise NotificationError(f"Webhook request failed: {exc}") from exc

        log.debug("Webhook notification delivered")
