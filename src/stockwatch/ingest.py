"""
HTTP base client for the market-data providers: sliding-window rate
limiting, request logging with masked keys, backoff on rate-limit errors.
"""
import time
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote_plus

import requests

logger = logging.getLogger(__name__)

# Lower-cased fragments that identify a rate-limit-class failure
RATE_LIMIT_MARKERS = (
    'rate limit',
    'too many requests',
    'api credits',
    'call frequency',
    'api limit',
)


class ProviderError(Exception):
    """Upstream failure: transport error, error payload or missing data."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


def is_rate_limit_error(error: BaseException) -> bool:
    """Rate-limit wording in an error body. HTTP 429 is detected from the status code."""
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class SlidingWindowRateLimiter:
    """
    At most `max_requests` calls in any rolling `window_seconds`.

    Timestamps of granted calls live in a deque guarded by a lock. When the
    window is full the caller sleeps until the oldest call ages out, plus a
    small safety margin.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        margin_seconds: float = 0.1
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.margin_seconds = margin_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps = deque()
        self._lock = threading.Lock()
        self.total_wait_seconds = 0.0

    def _evict(self, now: float):
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    def wait(self) -> float:
        """Block until a slot is free, record the call. Returns seconds slept."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    self.total_wait_seconds += waited
                    return waited
                wait_time = self.window_seconds - (now - self._timestamps[0]) + self.margin_seconds

            logger.info(f"Rate limit reached ({self.max_requests}/{self.window_seconds:.0f}s), "
                        f"waiting {wait_time:.2f}s")
            self._sleep(wait_time)
            waited += wait_time

    def in_window(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._timestamps)


class ApiClient:
    """
    Base JSON-over-HTTP client.

    - Rate limiting (N requests per rolling minute)
    - Explicit timeout on every call
    - Exponential backoff, only for rate-limit-class errors
    - Request metrics tracking

    Subclasses set `name`, `base_url` and `key_param`, and override
    `check_payload()` to turn provider error bodies into ProviderError.
    """

    name = 'api'
    base_url = ''
    key_param = 'apikey'
    default_rate_limit_per_minute = 60

    def __init__(
        self,
        api_key: Optional[str],
        rate_limit_per_minute: Optional[int] = None,
        max_retries: int = 3,
        timeout_seconds: float = 30,
        backoff_base_seconds: float = 1.0,
        base_url: Optional[str] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.api_key = api_key
        if base_url:
            self.base_url = base_url
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            rate_limit_per_minute or self.default_rate_limit_per_minute
        )
        self.max_retries = max_retries
        self.timeout = timeout_seconds
        self.backoff_base = backoff_base_seconds
        self._sleep = sleep

        # Metrics
        self._metrics_lock = threading.Lock()
        self.requests_by_endpoint = {}
        self.total_requests = 0
        self.total_retries = 0
        self.errors = []

    @classmethod
    def from_config(cls, provider_config: Dict, **kwargs) -> 'ApiClient':
        """Build from a `providers.<name>` config section."""
        return cls(
            api_key=provider_config.get('api_key'),
            rate_limit_per_minute=provider_config.get('rate_limit_per_minute'),
            max_retries=provider_config.get('max_retries', 3),
            timeout_seconds=provider_config.get('timeout_seconds', 30),
            backoff_base_seconds=provider_config.get('backoff_base_seconds', 1.0),
            base_url=provider_config.get('base_url'),
            **kwargs
        )

    def check_payload(self, data: Any) -> None:
        """Raise ProviderError if `data` is an error body. Default: accept."""

    def _mask_key(self, text: str) -> str:
        if not self.api_key:
            return text
        masked = self.api_key[:4] + "..."
        return text.replace(self.api_key, masked).replace(quote_plus(self.api_key), masked)

    def _request(self, endpoint: str, params: Optional[Dict] = None, retry_count: int = 0) -> Any:
        """
        Make HTTP GET request with rate limiting and rate-limit retries.

        Args:
            endpoint: Path below base_url (e.g., 'quote')
            params: Query parameters (API key added here)
            retry_count: Current retry attempt

        Returns:
            Decoded JSON body

        Raises:
            ProviderError: transport failure, HTTP error or error payload
        """
        if not self.api_key:
            raise ProviderError(f"{self.name}: API key not configured", provider=self.name)

        url = f"{self.base_url}/{endpoint}" if endpoint else self.base_url
        params = dict(params or {})
        params[self.key_param] = self.api_key

        self.rate_limiter.wait()

        with self._metrics_lock:
            self.total_requests += 1
            self.requests_by_endpoint[endpoint] = self.requests_by_endpoint.get(endpoint, 0) + 1

        try:
            # Log request details (hide API key)
            safe_params = {k: (str(v)[:4] + '...' if k == self.key_param and v else v) for k, v in params.items()}
            logger.info(f"→ API Request: GET {url} params={safe_params}")

            response = requests.get(url, params=params, timeout=self.timeout)

            logger.info(f"← API Response: Status {response.status_code}, Size: {len(response.content)} bytes")

            response.raise_for_status()
            data = response.json()
            self.check_payload(data)
            return data

        except requests.exceptions.RequestException as e:
            # requests puts the full URL, key included, into HTTPError text
            message = self._mask_key(str(e))
            logger.warning(f"Request failed for {url}: {message}")
            error = ProviderError(f"{self.name} request failed: {message}", provider=self.name)
            rate_limited = e.response is not None and e.response.status_code == 429
        except ProviderError as e:
            logger.warning(f"Error payload from {url}: {e}")
            error = e
            rate_limited = is_rate_limit_error(e)

        if rate_limited and retry_count < self.max_retries:
            wait_time = self.backoff_base * (2 ** retry_count)  # 1s, 2s, 4s ...
            logger.info(f"Rate limited, retrying in {wait_time:.2f}s (attempt {retry_count + 1}/{self.max_retries})")
            with self._metrics_lock:
                self.total_retries += 1
            self._sleep(wait_time)
            return self._request(endpoint, params, retry_count + 1)

        with self._metrics_lock:
            self.errors.append({"endpoint": endpoint, "error": str(error), "time": datetime.now().isoformat()})
        if retry_count:
            logger.error(f"Max retries exceeded for {url}")
        raise error

    def get_metrics(self) -> Dict[str, Any]:
        """Return request metrics."""
        with self._metrics_lock:
            return {
                "provider": self.name,
                "total_requests": self.total_requests,
                "total_retries": self.total_retries,
                "requests_by_endpoint": dict(self.requests_by_endpoint),
                "rate_limit_wait_seconds": self.rate_limiter.total_wait_seconds,
                "errors": list(self.errors)
            }
