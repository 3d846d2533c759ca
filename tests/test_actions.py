from __future__ import annotations

import sys
from datetime import datetime, timezone
import pytest

from report_watchdog.actions import (
    ActionDispatcher,
    CommandError,
    CommandOutcome,
    FollowManager,
    NotificationError,
    ServiceController,
    WebhookNotifier,
    build_report_embed,
    run_command,
)
from report_watchdog.mastodon import Account, ConnectivityError, Report
from report_watchdog.monitor import ReportWatchdog, RetryPolicy, Verdict

pytestmark = pytest.mark.anyio


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _report() -> Report:
    return Report(
        action_taken=False,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        id="7",
        category="violation",
        comment="Illegal content",
        account=Account("alice", "example.org"),
        target_account=Account("bob"),
    )


class _FakeExecutor:
    def __init__(self, fail_on: set[tuple[str, ...]] | None = None) -> None:
        self.calls: list[tuple[tuple[str, ...], float | None]] = []
        self._fail_on = fail_on or set()

    async def __call__(
        self,
        args: list[str],
        timeout: float | None,
    ) -> CommandOutcome:
        cmd_tuple = tuple(args)
        self.calls.append((cmd_tuple, timeout))
        if cmd_tuple in self._fail_on:
            raise CommandError(cmd_tuple, "exited with code 1: boom", exit_code=1)
        return CommandOutcome(command=cmd_tuple, output="ok", duration=0.1)


class _WebhookResponse:
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_):
        return False

    async def text(self) -> str:
        return self._body


class _WebhookSession:
    def __init__(self, status: int, posts: list, body: str = "") -> None:
        self._status = status
        self._body = body
        self._posts = posts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_):
        return False

    def post(self, url, *, json):
        self._posts.append((url, json))
        return _WebhookResponse(self._status, self._body)


def _notifier(status: int, posts: list, body: str = "") -> WebhookNotifier:
    return WebhookNotifier(
        "https://discord.example/api/webhooks/1/abc",
        session_factory=lambda **_: _WebhookSession(status, posts, body),
    )


class _RecordingNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.reports: list[tuple[Report, str]] = []
        self.escalations: list[tuple[int, BaseException, str]] = []
        self._fail = fail

    async def notify_report(self, report: Report, *, content: str) -> None:
        self.reports.append((report, content))
        if self._fail:
            raise NotificationError("Webhook returned HTTP 500", status=500, body="oops")

    async def notify_escalation(self, failures: int, error: BaseException, *, content: str) -> None:
        self.escalations.append((failures, error, content))


def test_report_embed_uses_category_comment_and_accounts() -> None:
    data = build_report_embed(_report()).to_dict()

    assert data["title"] == "violation"
    assert data["description"] == "Illegal content"
    assert data["fields"] == [
        {"name": "Reporter", "value": "@alice@example.org", "inline": True},
        {"name": "Reported account", "value": "@bob", "inline": True},
    ]


async def test_notifier_posts_content_and_single_embed() -> None:
    posts: list = []
    notifier = _notifier(204, posts)

    await notifier.notify_report(_report(), content="Shutting down")

    url, payload = posts[0]
    assert url == "https://discord.example/api/webhooks/1/abc"
    assert payload["content"] == "Shutting down"
    assert len(payload["embeds"]) == 1
    assert payload["embeds"][0]["title"] == "violation"


async def test_notifier_raises_on_unexpected_status() -> None:
    notifier = _notifier(400, [], body="bad embed")

    with pytest.raises(NotificationError) as excinfo:
        await notifier.notify_report(_report(), content="Shutting down")

    assert excinfo.value.status == 400
    assert excinfo.value.body == "bad embed"


async def test_service_controller_runs_stop_command() -> None:
    fake = _FakeExecutor()
    controller = ServiceController("mastodon-web", timeout=30.0, executor=fake)

    await controller.stop()

    assert fake.calls == [(("systemctl", "stop", "mastodon-web"), 30.0)]


async def test_follow_manager_continues_after_failures() -> None:
    fake = _FakeExecutor(fail_on={("tootctl", "accounts", "follow", "broken")})
    manager = FollowManager(["news", "broken", "admin"], executor=fake)

    results = await manager.follow_all()

    assert [call[0][-1] for call in fake.calls] == ["news", "broken", "admin"]
    assert isinstance(results["broken"], CommandError)
    assert isinstance(results["admin"], CommandOutcome)


async def test_dispatcher_notifies_then_stops_service() -> None:
    fake = _FakeExecutor()
    notifier = _RecordingNotifier()
    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=fake),
        notifier=notifier,  # type: ignore[arg-type]
    )
    report = _report()

    await dispatcher.handle_verdict(Verdict(shutdown_required=True, triggering_report=report))

    assert notifier.reports[0][0] is report
    assert [call[0] for call in fake.calls] == [("systemctl", "stop", "mastodon-web")]


async def test_dispatcher_ignores_negative_verdict() -> None:
    fake = _FakeExecutor()
    notifier = _RecordingNotifier()
    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=fake),
        notifier=notifier,  # type: ignore[arg-type]
    )

    await dispatcher.handle_verdict(Verdict(shutdown_required=False))

    assert notifier.reports == []
    assert fake.calls == []


async def test_dispatcher_stops_service_even_if_notification_fails(caplog) -> None:
    fake = _FakeExecutor()
    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=fake),
        notifier=_RecordingNotifier(fail=True),  # type: ignore[arg-type]
    )

    await dispatcher.handle_verdict(Verdict(shutdown_required=True, triggering_report=_report()))

    assert len(fake.calls) == 1
    assert "Failed to send report notification" in caplog.text


async def test_dispatcher_logs_failed_stop_command(caplog) -> None:
    fake = _FakeExecutor(fail_on={("systemctl", "stop", "mastodon-web")})
    dispatcher = ActionDispatcher(ServiceController("mastodon-web", executor=fake))

    await dispatcher.handle_verdict(Verdict(shutdown_required=True, triggering_report=_report()))

    assert "Failed to stop mastodon-web" in caplog.text


async def test_dispatcher_respects_disabled_shutdown() -> None:
    fake = _FakeExecutor()
    dispatcher = ActionDispatcher(ServiceController("mastodon-web", executor=fake), shutdown_enabled=False)

    await dispatcher.handle_verdict(Verdict(shutdown_required=True, triggering_report=_report()))

    assert fake.calls == []


@pytest.mark.parametrize(
    "action,expect_notify,expect_stop",
    [
        ("log", False, False),
        ("notify", True, False),
        ("shutdown", True, True),
    ],
)
async def test_dispatcher_escalation_actions(action: str, expect_notify: bool, expect_stop: bool) -> None:
    fake = _FakeExecutor()
    notifier = _RecordingNotifier()
    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=fake),
        notifier=notifier,  # type: ignore[arg-type]
        escalation_action=action,
    )

    await dispatcher.handle_escalation(11, ConnectivityError("down"))

    assert bool(notifier.escalations) is expect_notify
    assert bool(fake.calls) is expect_stop


async def test_dispatcher_syncs_follows() -> None:
    fake = _FakeExecutor()
    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=fake),
        follows=FollowManager(["news@example.org"], executor=fake),
    )

    await dispatcher.sync_follows()

    assert fake.calls[0][0] == ("tootctl", "accounts", "follow", "news@example.org")


def test_dispatcher_rejects_unknown_escalation_action() -> None:
    with pytest.raises(ValueError):
        ActionDispatcher(ServiceController("mastodon-web"), escalation_action="panic")


async def test_run_command_captures_output() -> None:
    outcome = await run_command([sys.executable, "-c", "print('hello')"], 30.0)
    assert outcome.output == "hello"
    assert outcome.command[-1] == "print('hello')"


async def test_run_command_raises_on_non_zero_exit() -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command([sys.executable, "-c", "import sys; sys.exit(3)"], 30.0)
    assert excinfo.value.exit_code == 3
    assert "exited with code 3" in str(excinfo.value)


async def test_run_command_includes_stderr_in_failure() -> None:
    script = "import sys; sys.stderr.write('unit not found'); sys.exit(5)"
    with pytest.raises(CommandError) as excinfo:
        await run_command([sys.executable, "-c", script], 30.0)
    assert "unit not found" in excinfo.value.reason


async def test_run_command_wraps_missing_binary(tmp_path) -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command([str(tmp_path / "missing-tootctl"), "accounts", "follow", "news"], 30.0)
    assert "could not be started" in str(excinfo.value)
    assert excinfo.value.exit_code is None


def _non_executable(tmp_path) -> str:
    script = tmp_path / "tootctl"
    script.write_text("#!/bin/sh\nexit 0\n")
    script.chmod(0o644)
    return str(script)


async def test_run_command_wraps_permission_error(tmp_path) -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command([_non_executable(tmp_path)], 30.0)
    assert isinstance(excinfo.value.__cause__, OSError)


async def test_run_command_times_out() -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command([sys.executable, "-c", "import time; time.sleep(30)"], 0.5)
    assert "timed out" in str(excinfo.value)


async def test_dispatcher_survives_non_executable_stop_command(tmp_path, caplog) -> None:
    controller = ServiceController("mastodon-web", stop_command=(_non_executable(tmp_path),))
    dispatcher = ActionDispatcher(controller)

    await dispatcher.handle_verdict(Verdict(shutdown_required=True, triggering_report=_report()))

    assert "Failed to stop mastodon-web" in caplog.text


async def test_cycle_survives_non_executable_follow_command(tmp_path, caplog) -> None:
    class _EmptySource:
        async def fetch_reports(self):
            return []

    dispatcher = ActionDispatcher(
        ServiceController("mastodon-web", executor=_FakeExecutor()),
        follows=FollowManager(["news@example.org"], follow_command=(_non_executable(tmp_path),)),
    )
    watchdog = ReportWatchdog(
        _EmptySource(),
        dispatcher,
        policy=RetryPolicy(threshold=10, backoff_seconds=10.0, interval_seconds=1800.0),
    )

    assert await watchdog.run_cycle() == 1800.0
    assert "Failed to force-follow news@example.org" in caplog.text
