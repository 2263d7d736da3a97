from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_incrementing

from sportsfeed.data_providers.breaker import CircuitBreaker
from sportsfeed.errors import RETRYABLE_STATUS_CODES, UpstreamTerminalError, UpstreamTransientError

logger = logging.getLogger(__name__)

USER_AGENT = "SportsFeed/1.0"

T = TypeVar("T")


class UpstreamClient:
    """Shared plumbing for one HTTP data provider.

    Every data call goes through the breaker gate, then a bounded retry loop
    for transient failures. Terminal failures (4xx answers, malformed bodies)
    are never retried. Both kinds count against the breaker once the call is
    over, so a half-open trial only closes it on a usable answer.
    """

    name = "upstream"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float,
        max_retries: int,
        retry_delay: float,
        retry_backoff: float,
        breaker: CircuitBreaker,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(max_retries, 0)
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.breaker = breaker
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _default_params(self) -> dict[str, Any]:
        return {}

    def _on_response(self, response: httpx.Response) -> None:
        """Hook for provider specific response headers."""

    async def _request_once(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        query = {**self._default_params(), **(params or {})}
        client = self._get_client()
        logger.debug("upstream request: upstream=%s path=%s", self.name, path)
        try:
            response = await client.get(path, params=query)
        except httpx.TimeoutException as exc:
            raise UpstreamTransientError(self.name, f"timeout requesting {path}") from exc
        except httpx.TransportError as exc:
            raise UpstreamTransientError(self.name, f"network error requesting {path}: {exc}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise UpstreamTransientError(self.name, f"HTTP {status} for {path}", status_code=status)
        if status >= 400:
            raise UpstreamTerminalError(self.name, f"HTTP {status} for {path}", status_code=status)
        return response

    async def _request_with_retry(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_backoff),
            retry=retry_if_exception_type(UpstreamTransientError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._request_once(path, params)
        return response

    def _decode(self, response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamTerminalError(self.name, f"malformed JSON body for {path}", status_code=response.status_code) from exc

    async def fetch(
        self, path: str, params: dict[str, Any] | None = None, parse: Callable[[Any], T] | None = None
    ) -> Any:
        """Gated, retried GET. ``parse`` runs inside the breaker accounting, so a
        body of the wrong shape counts as a failed call."""
        self.breaker.before_call()
        try:
            response = await self._request_with_retry(path, params)
            self._on_response(response)
            payload = self._decode(response, path)
            if parse is not None:
                payload = parse(payload)
        except UpstreamTransientError as exc:
            self.breaker.record_failure()
            logger.error(
                "upstream call failed after retries: upstream=%s path=%s status=%s failures=%s",
                self.name,
                path,
                exc.status_code,
                self.breaker.failure_count,
            )
            raise
        except UpstreamTerminalError as exc:
            self.breaker.record_failure()
            logger.warning(
                "upstream call rejected: upstream=%s path=%s status=%s failures=%s error=%s",
                self.name,
                path,
                exc.status_code,
                self.breaker.failure_count,
                exc.message,
            )
            raise
        except BaseException:
            self.breaker.abandon_trial()
            raise

        self.breaker.record_success()
        return payload

    async def _health_request(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            await self._request_once(path, params)
        except (UpstreamTransientError, UpstreamTerminalError) as exc:
            return {
                "status": "unhealthy",
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                "breaker_open": self.breaker.is_open,
                "breaker": self.breaker.snapshot(),
                "message": exc.message,
            }
        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            "breaker_open": self.breaker.is_open,
            "breaker": self.breaker.snapshot(),
            "message": None,
        }
