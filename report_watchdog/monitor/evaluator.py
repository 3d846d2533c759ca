from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from report_watchdog.mastodon.models import Report

__all__ = [
    "REPORT_AGE_THRESHOLD",
    "Verdict",
    "evaluate_reports",
    "pending_reports",
]

log = logging.getLogger(__name__)

REPORT_AGE_THRESHOLD = timedelta(hours=23)


@dataclass(slots=True, frozen=True)
class Verdict:
    shutdown_required: bool
    triggering_report: Report | None = None


NOT_REQUIRED = Verdict(shutdown_required=False)


def pending_reports(reports: Iterable[Report]) -> list[Report]:
    """Return the reports no moderator has acted on yet, in input order."""
    return [report for report in reports if not report.action_taken]


def evaluate_reports(
    reports: Iterable[Report],
    *,
    now: datetime | None = None,
    threshold: timedelta = REPORT_AGE_THRESHOLD,
    order: str = "received",
) -> Verdict:
    """Decide whether an unhandled report is older than ``threshold``.

    Reports are scanned in the order received (or oldest first when ``order``
    is ``"oldest"``) and the first one strictly older than the threshold is
    returned as the trigger. Reports dated in the future never qualify.
    """
    current = now if now is not None else datetime.now(timezone.utc)
    candidates = pending_reports(reports)
    if order == "oldest":
        candidates.sort(key=lambda report: report.created_at)
    elif order != "received":
        raise ValueError(f"Unknown report order {order!r}")

    for report in candidates:
        age = report.age(current)
        if age > threshold:
            return Verdict(shutdown_required=True, triggering_report=report)
        log.debug("Report %s pending for %s", report.id or "?", age)

    return NOT_REQUIRED
