"""Blocking JSON client for the OData hosts: timeouts, retries and per-host throttling."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from locatiedata.common.constants import USER_AGENT
from locatiedata.common.errors import FetchError, RetryableFetchError
from locatiedata.common.logging import get_logger, log_event

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})
DEFAULT_RATE_PER_SEC = 5.0
# One multi-level fan-out (two national candidates plus three levels) fits in a single burst.
DEFAULT_BURST = 5.0


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 30.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 0.5
    max_wait: float = 10.0


class TokenBucket:
    """Refilling request allowance shared by every thread hitting one host."""

    def __init__(
        self,
        rate_per_sec: float,
        capacity: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_per_sec <= 0:
            raise ValueError(f"rate_per_sec must be > 0, got {rate_per_sec}")
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        self._clock = clock
        self._sleep = sleep
        self._available = self.capacity
        self._stamp = clock()
        self._lock = threading.Lock()

    def reserve(self, tokens: float = 1.0) -> float:
        """Take `tokens` and return 0.0, or return the seconds until they are free."""
        with self._lock:
            now = self._clock()
            self._available = min(self.capacity, self._available + (now - self._stamp) * self.rate_per_sec)
            self._stamp = now
            if self._available >= tokens:
                self._available -= tokens
                return 0.0
            return (tokens - self._available) / self.rate_per_sec

    def acquire(self, tokens: float = 1.0) -> float:
        waited = 0.0
        while True:
            delay = self.reserve(tokens)
            if delay <= 0:
                return waited
            delay = max(delay, 0.01)
            self._sleep(delay)
            waited += delay


class HostRateLimiter:
    def __init__(
        self,
        default_rate_per_sec: float = DEFAULT_RATE_PER_SEC,
        *,
        host_rates: Mapping[str, float] | None = None,
        burst: float = DEFAULT_BURST,
    ) -> None:
        self.default_rate_per_sec = default_rate_per_sec
        self.host_rates = dict(host_rates or {})
        self.burst = burst
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def bucket_for(self, host: str) -> TokenBucket:
        with self._lock:
            bucket = self._buckets.get(host)
            if bucket is None:
                rate = self.host_rates.get(host, self.default_rate_per_sec)
                bucket = TokenBucket(rate_per_sec=rate, capacity=max(rate, self.burst))
                self._buckets[host] = bucket
            return bucket

    def acquire(self, url: str) -> float:
        return self.bucket_for(urlparse(url).netloc).acquire()


def odata_error_message(response: requests.Response) -> str | None:
    """Extract the `odata.error` message CBS returns alongside 4xx/5xx statuses."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("odata.error") or payload.get("error")
    if not isinstance(error, dict):
        return None
    message = error.get("message")
    if isinstance(message, dict):
        message = message.get("value")
    return str(message) if message else None


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        rate_per_sec: float = DEFAULT_RATE_PER_SEC,
        host_rates: Mapping[str, float] | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self.limiter = HostRateLimiter(rate_per_sec, host_rates=host_rates)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _check_status(self, response: requests.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = odata_error_message(response)
        message = f"HTTP status {status} from {url}" + (f": {detail}" if detail else "")
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableFetchError(message)
        raise FetchError(message)

    def _get_json_once(
        self,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        timeout: TimeoutConfig,
    ) -> dict[str, Any]:
        self.limiter.acquire(url)
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})},
                timeout=(timeout.connect, timeout.read),
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise RetryableFetchError(f"Connection failure for {url}: {exc}") from exc
        self._check_status(response, url)

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON payload from {url}") from exc
        if not isinstance(payload, dict):
            raise FetchError(f"Expected a JSON object from {url}, got {type(payload).__name__}")
        return payload

    def _log_retry(self, url: str) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            log_event(
                logger,
                f"retrying {url}: {state.outcome.exception()}",
                level=logging.WARNING,
                event="HTTP_RETRY",
                status="retry",
                attempt=state.attempt_number,
                duration_ms=int(state.idle_for * 1000),
                error_code=RetryableFetchError.error_code,
            )

        return before_sleep

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> dict[str, Any]:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(initial=self.retry.multiplier, max=self.retry.max_wait, jitter=0.5),
            retry=retry_if_exception_type(RetryableFetchError),
            before_sleep=self._log_retry(url),
            reraise=True,
        )
        return retrying(self._get_json_once, url, params, headers, timeout or self.timeout)
