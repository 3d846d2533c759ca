from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_INSTANCE_URL = "https://mastodon.insa.lol"
DEFAULT_SERVICE = "mastodon-web"
DEFAULT_STOP_COMMAND = ("systemctl", "stop")
DEFAULT_FOLLOW_COMMAND = ("tootctl", "accounts", "follow")
DEFAULT_POLL_SECONDS = 30 * 60.0
DEFAULT_RETRY_SECONDS = 10.0
DEFAULT_RETRY_THRESHOLD = 10
DEFAULT_REPORT_MAX_AGE_HOURS = 23.0
DEFAULT_HTTP_TIMEOUT = 15.0
DEFAULT_COMMAND_TIMEOUT = 120.0

REPORT_ORDERS = ("received", "oldest")
ESCALATION_ACTIONS = ("log", "notify", "shutdown")


class ConfigurationError(ValueError):
    """Raised when the watchdog configuration is missing or invalid."""


def _parse_bool(value: str | None, *, default: bool, name: str) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, received {value!r}")


def _parse_positive_float(value: str | None, *, default: float, name: str) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be numeric, received {value!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be greater than 0, received {value!r}")
    return parsed


def _parse_positive_int(value: str | None, *, default: int, name: str) -> int:
    parsed = _parse_positive_float(value, default=float(default), name=name)
    final = int(parsed)
    if final < 1:
        raise ConfigurationError(f"{name} must be at least 1, received {value!r}")
    return final


def _parse_choice(value: str | None, *, default: str, choices: tuple[str, ...], name: str) -> str:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered not in choices:
        options = ", ".join(repr(choice) for choice in choices)
        raise ConfigurationError(f"{name} must be one of {options}, received {value!r}")
    return lowered


def _parse_accounts(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return tuple()
    seen: set[str] = set()
    ordered: list[str] = []
    for chunk in raw.replace("\n", ",").split(","):
        cleaned = chunk.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            ordered.append(cleaned)
    return tuple(ordered)


def _parse_command(raw: str | None, *, default: tuple[str, ...], name: str) -> tuple[str, ...]:
    if raw is None:
        return default
    parts = tuple(shlex.split(raw))
    if not parts:
        raise ConfigurationError(f"{name} must name a program to run")
    return parts


@dataclass(slots=True)
class WatchdogConfig:
    token: str
    instance_url: str
    webhook_url: str | None
    service_name: str
    follow_accounts: tuple[str, ...]
    poll_seconds: float
    retry_seconds: float
    retry_threshold: int
    report_max_age_hours: float
    report_order: str
    escalation_action: str
    shutdown_enabled: bool
    stop_command: tuple[str, ...]
    follow_command: tuple[str, ...]
    http_timeout: float
    command_timeout: float
    log_level: str

    @property
    def notifications_enabled(self) -> bool:
        return self.webhook_url is not None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> WatchdogConfig:
        source = env if env is not None else os.environ

        def _first(*keys: str, default: str | None = None) -> str | None:
            for key in keys:
                value = source.get(key)
                if value is not None and value.strip():
                    return value.strip()
            return default

        token = _first("MASTODON_TOKEN")
        if not token:
            raise ConfigurationError("MASTODON_TOKEN is not set.")

        instance_url = (_first("MASTODON_URL", default=DEFAULT_INSTANCE_URL) or DEFAULT_INSTANCE_URL).rstrip("/")
        if not instance_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"MASTODON_URL must be an http(s) URL, received {instance_url!r}")

        webhook_url = _first("DISCORD_WEBHOOK_URL", "WATCHDOG_WEBHOOK_URL")
        if webhook_url is None:
            _logger.info("DISCORD_WEBHOOK_URL missing; notifications will only be logged")

        escalation_action = _parse_choice(
            _first("WATCHDOG_ESCALATION_ACTION"),
            default="notify",
            choices=ESCALATION_ACTIONS,
            name="WATCHDOG_ESCALATION_ACTION",
        )

        return cls(
            token=token,
            instance_url=instance_url,
            webhook_url=webhook_url,
            service_name=_first("MASTODON_SERVICE", default=DEFAULT_SERVICE) or DEFAULT_SERVICE,
            follow_accounts=_parse_accounts(_first("FORCE_FOLLOW_ACCOUNTS")),
            poll_seconds=_parse_positive_float(
                _first("WATCHDOG_POLL_SECONDS"),
                default=DEFAULT_POLL_SECONDS,
                name="WATCHDOG_POLL_SECONDS",
            ),
            retry_seconds=_parse_positive_float(
                _first("WATCHDOG_RETRY_SECONDS"),
                default=DEFAULT_RETRY_SECONDS,
                name="WATCHDOG_RETRY_SECONDS",
            ),
            retry_threshold=_parse_positive_int(
                _first("WATCHDOG_RETRY_THRESHOLD"),
                default=DEFAULT_RETRY_THRESHOLD,
                name="WATCHDOG_RETRY_THRESHOLD",
            ),
            report_max_age_hours=_parse_positive_float(
                _first("WATCHDOG_REPORT_MAX_AGE_HOURS"),
                default=DEFAULT_REPORT_MAX_AGE_HOURS,
                name="WATCHDOG_REPORT_MAX_AGE_HOURS",
            ),
            report_order=_parse_choice(
                _first("WATCHDOG_REPORT_ORDER"),
                default="received",
                choices=REPORT_ORDERS,
                name="WATCHDOG_REPORT_ORDER",
            ),
            escalation_action=escalation_action,
            shutdown_enabled=_parse_bool(
                _first("WATCHDOG_SHUTDOWN_ENABLED"),
                default=True,
                name="WATCHDOG_SHUTDOWN_ENABLED",
            ),
            stop_command=_parse_command(
                _first("WATCHDOG_STOP_COMMAND"),
                default=DEFAULT_STOP_COMMAND,
                name="WATCHDOG_STOP_COMMAND",
            ),
            follow_command=_parse_command(
                _first("WATCHDOG_FOLLOW_COMMAND"),
                default=DEFAULT_FOLLOW_COMMAND,
                name="WATCHDOG_FOLLOW_COMMAND",
            ),
            http_timeout=_parse_positive_float(
                _first("WATCHDOG_HTTP_TIMEOUT"),
                default=DEFAULT_HTTP_TIMEOUT,
                name="WATCHDOG_HTTP_TIMEOUT",
            ),
            command_timeout=_parse_positive_float(
                _first("WATCHDOG_COMMAND_TIMEOUT"),
                default=DEFAULT_COMMAND_TIMEOUT,
                name="WATCHDOG_COMMAND_TIMEOUT",
            ),
            log_level=(_first("LOG_LEVEL", default="INFO") or "INFO").upper(),
        )


def load_watchdog_config() -> WatchdogConfig:
    load_dotenv()
    return WatchdogConfig.from_env()
