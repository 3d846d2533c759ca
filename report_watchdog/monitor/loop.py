from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

from report_watchdog.mastodon.errors import ApiError, ReportFetchError
from report_watchdog.mastodon.models import Report

from .evaluator import REPORT_AGE_THRESHOLD, Verdict, evaluate_reports
from .retry import RetryPolicy

if TYPE_CHECKING:
    from report_watchdog.core.config import WatchdogConfig

__all__ = ["ReportSource", "VerdictHandler", "ReportWatchdog"]

log = logging.getLogger(__name__)


class ReportSource(Protocol):
    async def fetch_reports(self) -> list[Report]: ...


class VerdictHandler(Protocol):
    async def handle_verdict(self, verdict: Verdict) -> None: ...

    async def handle_escalation(self, failures: int, error: ReportFetchError) -> None: ...

    async def sync_follows(self) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportWatchdog:
    """Poll the report list forever and hand verdicts to the dispatcher."""

    def __init__(
        self,
        source: ReportSource,
        handler: VerdictHandler,
        *,
        policy: RetryPolicy | None = None,
        threshold: timedelta = REPORT_AGE_THRESHOLD,
        order: str = "received",
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._source = source
        self._handler = handler
        self._policy = policy or RetryPolicy()
        self._threshold = threshold
        self._order = order
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: WatchdogConfig,
        source: ReportSource,
        handler: VerdictHandler,
    ) -> ReportWatchdog:
        policy = RetryPolicy(
            threshold=config.retry_threshold,
            backoff_seconds=config.retry_seconds,
            interval_seconds=config.poll_seconds,
        )
        return cls(
            source,
            handler,
            policy=policy,
            threshold=timedelta(hours=config.report_max_age_hours),
            order=config.report_order,
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run_cycle(self) -> float:
        """Run one fetch/evaluate/dispatch pass and return the delay until the next one."""
        try:
            reports = await self._source.fetch_reports()
        except ReportFetchError as exc:
            return await self._on_fetch_failure(exc)

        decision = self._policy.record_success()
        verdict = evaluate_reports(
            reports,
            now=self._clock(),
            threshold=self._threshold,
            order=self._order,
        )
        if verdict.shutdown_required:
            log.warning("Server should shut down!")
        else:
            log.info("Checked %d report(s); no overdue reports", len(reports))

        await self._handler.handle_verdict(verdict)
        await self._handler.sync_follows()
        return decision.delay

    async def _on_fetch_failure(self, exc: ReportFetchError) -> float:
        decision = self._policy.record_failure()
        if isinstance(exc, ApiError):
            log.warning(
                "Failed to get reports (attempt %d): HTTP %s %s",
                decision.failures,
                exc.status,
                exc.body,
            )
        else:
            log.warning(
                "Failed to get reports (attempt %d): %s: %s",
                decision.failures,
                type(exc).__name__,
                exc,
            )

        if decision.escalate:
            log.error(
                "Reports unavailable after %d consecutive failures; escalating",
                decision.failures,
            )
            await self._handler.handle_escalation(decision.failures, exc)
        return decision.delay

    async def run_forever(self) -> None:
        while True:
            delay = await self.run_cycle()
            log.debug("Next report check in %.0fs", delay)
            await self._sleep(delay)
