from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from .errors import DecodeError

__all__ = ["Account", "Report", "parse_timestamp"]


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp from the API into an aware UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        raise DecodeError(f"Invalid timestamp {value!r}")
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise DecodeError(f"Invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(slots=True, frozen=True)
class Account:
    username: str
    domain: str | None = None

    @property
    def display_name(self) -> str:
        if self.domain:
            return f"@{self.username}@{self.domain}"
        return f"@{self.username}"

    def __str__(self) -> str:
        return self.display_name

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Account":
        username = data.get("username")
        if not isinstance(username, str) or not username:
            raise DecodeError("Account is missing a username")
        domain = data.get("domain")
        return cls(username=username, domain=domain if isinstance(domain, str) and domain else None)


@dataclass(slots=True, frozen=True)
class Report:
    """A moderation report as returned by the admin reports endpoint."""

    action_taken: bool
    created_at: datetime
    id: str | None = None
    category: str = ""
    comment: str = ""
    account: Account | None = None
    target_account: Account | None = None

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Report":
        if not isinstance(data, Mapping):
            raise DecodeError(f"Expected a report object, received {type(data).__name__}")

        try:
            action_taken = data["action_taken"]
            created_raw = data["created_at"]
        except KeyError as exc:
            raise DecodeError(f"Report missing field {exc.args[0]}") from exc
        if not isinstance(action_taken, bool):
            raise DecodeError(f"action_taken must be a boolean, received {action_taken!r}")

        report_id = data.get("id")
        category = data.get("category")
        comment = data.get("comment")

        return cls(
            action_taken=action_taken,
            created_at=parse_timestamp(created_raw),
            id=str(report_id) if report_id is not None else None,
            category=category if isinstance(category, str) else "",
            comment=comment if isinstance(comment, str) else "",
            account=_optional_account(data.get("account")),
            target_account=_optional_account(data.get("target_account")),
        )


def _optional_account(value: Any) -> Account | None:
    if not isinstance(value, Mapping):
        return None
    return Account.from_mapping(value)
