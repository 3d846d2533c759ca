from __future__ import annotations

__all__ = [
    "ReportFetchError",
    "ConnectivityError",
    "ApiError",
    "DecodeError",
]


class ReportFetchError(RuntimeError):
    """Base class for recoverable failures while reading the report list."""


class ConnectivityError(ReportFetchError):
    """Raised when no response could be obtained from the instance."""


class ApiError(ReportFetchError):
    """Raised when the reports endpoint answers with a non-success status."""

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        snippet = body.strip()
        if len(snippet) > 400:
            snippet = snippet[:397] + "..."
        detail = f"Reports endpoint returned HTTP {status}"
        super().__init__(f"{detail}: {snippet}" if snippet else detail)


class DecodeError(ReportFetchError):
    """Raised when the response body is not a valid report list."""
