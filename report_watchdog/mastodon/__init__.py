"""Client and models for the Mastodon admin reports API."""

from .client import REPORTS_PATH, ReportClient
from .errors import ApiError, ConnectivityError, DecodeError, ReportFetchError
from .models import Account, Report, parse_timestamp

__all__ = [
    "REPORTS_PATH",
    "Account",
    "ApiError",
    "ConnectivityError",
    "DecodeError",
    "Report",
    "ReportClient",
    "ReportFetchError",
    "parse_timestamp",
]
