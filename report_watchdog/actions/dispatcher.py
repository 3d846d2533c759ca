from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from report_watchdog.core.config import ESCALATION_ACTIONS
from report_watchdog.monitor.evaluator import Verdict

from .commands import CommandError, FollowManager, ServiceController
from .notifier import NotificationError, WebhookNotifier

if TYPE_CHECKING:
    from report_watchdog.core.config import WatchdogConfig
    from report_watchdog.mastodon.models import Report

__all__ = ["ActionDispatcher"]

log = logging.getLogger(__name__)


class ActionDispatcher:
    """Turn watchdog verdicts into notifications and service shutdowns.

    Every side effect is best effort: failures are logged and swallowed so the
    polling loop keeps running. A failed notification never blocks the stop
    command that follows it.
    """

    def __init__(
        self,
        controller: ServiceController,
        *,
        notifier: WebhookNotifier | None = None,
        follows: FollowManager | None = None,
        escalation_action: str = "notify",
        shutdown_enabled: bool = True,
    ) -> None:
        if escalation_action not in ESCALATION_ACTIONS:
            raise ValueError(f"Unknown escalation action {escalation_action!r}")
        self._controller = controller
        self._notifier = notifier
        self._follows = follows
        self._escalation_action = escalation_action
        self._shutdown_enabled = shutdown_enabled

    @classmethod
    def from_config(cls, config: WatchdogConfig) -> ActionDispatcher:
        controller = ServiceController(
            config.service_name,
            stop_command=config.stop_command,
            timeout=config.command_timeout,
        )
        notifier = (
            WebhookNotifier(config.webhook_url, timeout=config.http_timeout)
            if config.webhook_url
            else None
        )
        follows = (
            FollowManager(
                config.follow_accounts,
                follow_command=config.follow_command,
                timeout=config.command_timeout,
            )
            if config.follow_accounts
            else None
        )
        return cls(
            controller,
            notifier=notifier,
            follows=follows,
            escalation_action=config.escalation_action,
            shutdown_enabled=config.shutdown_enabled,
        )

    async def handle_verdict(self, verdict: Verdict) -> None:
        if not verdict.shutdown_required:
            return

        report = verdict.triggering_report
        if report is not None:
            log.warning(
                "Report %s (%s) from %s against %s has been pending since %s",
                report.id or "?",
                report.category or "uncategorised",
                report.account or "unknown",
                report.target_account or "unknown",
                report.created_at.isoformat(),
            )
            await self._notify_report(report)
        await self._shutdown()

    async def handle_escalation(self, failures: int, error: BaseException) -> None:
        if self._escalation_action == "log":
            log.error("Escalation after %d failed report checks: %s", failures, error)
            return

        await self._notify_escalation(failures, error)
        if self._escalation_action == "shutdown":
            await self._shutdown()

    async def sync_follows(self) -> None:
        if self._follows is None:
            return
        await self._follows.follow_all()

    async def _notify_report(self, report: Report) -> None:
        content = (
            f"A report has gone unhandled for too long, shutting down ``{self._controller.service}``."
        )
        if self._notifier is None:
            log.info("No webhook configured; skipping report notification")
            return
        try:
            await self._notifier.notify_report(report, content=content)
        except NotificationError as exc:
            log.error("Failed to send report notification: %s %s", exc, exc.body)

    async def _notify_escalation(self, failures: int, error: BaseException) -> None:
        content = f"Unable to read moderation reports after {failures} consecutive attempts."
        if self._notifier is None:
            log.error("%s Last error: %s", content, error)
            return
        try:
            await self._notifier.notify_escalation(failures, error, content=content)
        except NotificationError as exc:
            log.error("Failed to send escalation notification: %s %s", exc, exc.body)

    async def _shutdown(self) -> None:
        if not self._shutdown_enabled:
            log.warning("Shutdown disabled; not stopping %s", self._controller.service)
            return
        try:
            await self._controller.stop()
        except CommandError as exc:
            log.error("Failed to stop %s: %s", self._controller.service, exc)
