from __future__ import annotations

import logging

NOISY_LIBRARIES = (
    "aiohttp",
    "asyncio",
    "discord",
)


def configure_logging(level_name: str) -> logging.Logger:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s %(message)s",
    )
    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(level)

    return logging.getLogger("report_watchdog")
