"""Error taxonomy shared by the upstream clients, cache and repositories.

Read-path callers branch on the concrete class to pick user-facing messaging:
``CircuitOpenError`` means "service degraded, try again shortly" and is never
the same thing as an empty result.
"""

from __future__ import annotations


class SportsFeedError(Exception):
    pass


class UpstreamError(SportsFeedError):
    def __init__(self, upstream: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{upstream}: {message}")
        self.upstream = upstream
        self.message = message
        self.status_code = status_code


class CircuitOpenError(UpstreamError):
    """Raised by the breaker gate; no network attempt was made."""

    def __init__(self, upstream: str, retry_after_seconds: float | None = None) -> None:
        super().__init__(upstream, "circuit breaker is open")
        self.retry_after_seconds = retry_after_seconds


class UpstreamTransientError(UpstreamError):
    """Timeouts, connection failures and 408/429/5xx responses."""


class UpstreamTerminalError(UpstreamError):
    """Bad input, non-retryable 4xx and malformed payloads."""


class CacheUnavailableError(SportsFeedError):
    """Raised by cache backends. The cache facade never lets it escape."""


class PersistenceError(SportsFeedError):
    pass


RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
