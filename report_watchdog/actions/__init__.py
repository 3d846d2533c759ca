"""Side effects triggered by the watchdog: notifications, shutdown, follows."""

from .commands import (
    CommandError,
    CommandOutcome,
    CommandRunner,
    FollowManager,
    ServiceController,
    run_command,
)
from .dispatcher import ActionDispatcher
from .notifier import NotificationError, WebhookNotifier, build_escalation_embed, build_report_embed

__all__ = [
    "ActionDispatcher",
    "CommandError",
    "CommandOutcome",
    "CommandRunner",
    "FollowManager",
    "NotificationError",
    "ServiceController",
    "WebhookNotifier",
    "build_escalation_embed",
    "build_report_embed",
    "run_command",
]
