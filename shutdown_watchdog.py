from __future__ import annotations

import asyncio
import logging
import sys
import time

from report_watchdog.actions import ActionDispatcher
from report_watchdog.core import ConfigurationError, configure_logging, load_watchdog_config
from report_watchdog.mastodon import ReportClient
from report_watchdog.monitor import ReportWatchdog


async def _main() -> int:
    print(f"[BOOT] Starting report watchdog at {time.strftime('%X')}")
    try:
        config = load_watchdog_config()
    except ConfigurationError as exc:
        print(f"[FATAL] {exc} Exiting.")
        return 1

    configure_logging(config.log_level)
    logger = logging.getLogger("report_watchdog.startup")
    logger.info("Log level resolved to %s", config.log_level)
    logger.info(
        "Watching %s every %.0fs (retry=%.0fs threshold=%d max_age=%sh order=%s)",
        config.instance_url,
        config.poll_seconds,
        config.retry_seconds,
        config.retry_threshold,
        config.report_max_age_hours,
        config.report_order,
    )
    logger.info(
        "Shutdown target=%s enabled=%s escalation=%s notifications=%s follows=%d",
        config.service_name,
        config.shutdown_enabled,
        config.escalation_action,
        config.notifications_enabled,
        len(config.follow_accounts),
    )

    client = ReportClient(config.instance_url, config.token, timeout=config.http_timeout)
    dispatcher = ActionDispatcher.from_config(config)
    watchdog = ReportWatchdog.from_config(config, client, dispatcher)
    await watchdog.run_forever()
    return 0


def main() -> None:
    try:
        code = asyncio.run(_main())
    except KeyboardInterrupt:
        print("[SHUTDOWN] Interrupted; exiting.")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
