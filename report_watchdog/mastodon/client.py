from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable

import aiohttp

from .errors import ApiError, ConnectivityError, DecodeError
from .models import Report

__all__ = ["ReportClient", "REPORTS_PATH"]

log = logging.getLogger(__name__)

REPORTS_PATH = "/api/v1/admin/reports"
_DEFAULT_TIMEOUT_SECONDS = 15.0


class ReportClient:
    """Reads the moderation report list from a Mastodon instance.

    Every call performs exactly one request. Retrying is left to the caller so
    that the watchdog loop keeps control of its backoff schedule.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        if not token:
            raise ValueError("A Mastodon API token is required")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session_factory = session_factory

    @property
    def reports_url(self) -> str:
        return f"{self._base_url}{REPORTS_PATH}"

    async def fetch_reports(self) -> list[Report]:
        headers = {"Authorization": f"Bearer {self._token}"}
        url = self.reports_url

        try:
            async with self._session_factory(timeout=self._timeout) as session:
                async with session.get(url, headers=headers) as resp:
                    status = resp.status
                    body = await resp.read()
        except asyncio.TimeoutError as exc:
            raise ConnectivityError(
                f"Timed out after {self._timeout.total or _DEFAULT_TIMEOUT_SECONDS:.0f}s contacting {url}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise ConnectivityError(f"Failed to contact {url}: {exc}") from exc

        if status != 200:
            raise ApiError(status, body.decode("utf-8", errors="replace"))

        reports = _decode_reports(body)
        log.debug("Fetched %d report(s) from %s", len(reports), url)
        return reports


def _decode_reports(body: bytes) -> list[Report]:
    try:
        data = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Reports endpoint returned a body that is not UTF-8: {exc}") from exc
    except ValueError as exc:
        raise DecodeError(f"Reports endpoint returned invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise DecodeError(f"Expected a JSON array of reports, received {type(data).__name__}")
    return [Report.from_mapping(item) for item in data]
