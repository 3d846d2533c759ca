from .evaluator import REPORT_AGE_THRESHOLD, Verdict, evaluate_reports, pending_reports
from .loop import ReportSource, ReportWatchdog, VerdictHandler
from .retry import RetryDecision, RetryPolicy, RetryState

__all__ = [
    "REPORT_AGE_THRESHOLD",
    "ReportSource",
    "ReportWatchdog",
    "RetryDecision",
    "RetryPolicy",
    "RetryState",
    "Verdict",
    "VerdictHandler",
    "evaluate_reports",
    "pending_reports",
]
