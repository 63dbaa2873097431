"""
Rate-limited HTTP transport for all Deezer requests.

Every outbound request in the application goes through a single Transport
instance, which:
    - Spaces request starts at least `min_interval` seconds apart
      (RateLimiter, shared by everything that holds the transport)
    - Sends a fixed browser-like header set and the 'arl' session cookie
    - Retries network-level failures (DNS, refused connection, TLS,
      timeout) immediately, logging "(network hiccup)"
    - Never retries HTTP status errors; check_status() turns a non-200
      into UpstreamStatusError for the caller

Retry Bound:
    Network failures are retried up to `max_attempts` times per request.
    max_attempts=None retries forever, which can hang indefinitely if the
    network never comes back.

Usage:
    transport = Transport(arl=config.deezer.arl)
    album = transport.get_json("https://api.deezer.com/album/302127")
"""

import json
import threading
import time
from typing import Any, Callable

import requests

from deezer_downloader.core.exceptions import TransportError, UpstreamStatusError
from deezer_downloader.core.logger import get_logger

logger = get_logger(__name__)


DEFAULT_MIN_INTERVAL = 0.5  # seconds between request starts
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_TIMEOUT = 30.0
BODY_PREVIEW_LENGTH = 200

BROWSER_HEADERS = {
    "Pragma": "no-cache",
    "Origin": "https://www.deezer.com",
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/68.0.3440.106 Safari/537.36"
    ),
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "Accept": "*/*",
    "Cache-Control": "no-cache",
    "X-Requested-With": "XMLHttpRequest",
    "Connection": "keep-alive",
    "Referer": "https://www.deezer.com/",
    "DNT": "1",
}

SESSION_COOKIE = "arl"


class RateLimiter:
    """
    Enforce a minimum gap between the start of consecutive requests.

    The time of the last start is recorded when acquire() returns, i.e.
    at the start of the request, not after it completes.

    Args:
        min_interval: Minimum seconds between two acquire() returns.
        clock: Monotonic time source. Injectable for tests.
        sleep: Sleep function. Injectable for tests.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_start: float | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def acquire(self) -> None:
        """Block until the next request may start, then mark it as started."""
        with self._lock:
            if self._last_start is not None:
                wait = self._min_interval - (self._clock() - self._last_start)
                if wait > 0:
                    self._sleep(wait)
            self._last_start = self._clock()


class Transport:
    """
    HTTP client for Deezer with rate limiting, fixed headers and retries.

    Attributes:
        limiter: The RateLimiter consulted before every attempt.
        session: Underlying requests.Session (headers and cookie preset).
        max_attempts: Attempts per request on network errors, None = forever.
        timeout: Per-request timeout in seconds.

    Thread Safety:
        Request spacing is thread-safe (the limiter is locked). The
        application itself issues requests sequentially.
    """

    def __init__(
        self,
        arl: str,
        limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        max_attempts: int | None = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.limiter = limiter or RateLimiter()
        self.session = session or requests.Session()
        self.session.headers.update(BROWSER_HEADERS)
        self.session.cookies.set(SESSION_COOKIE, arl)
        self.max_attempts = max_attempts
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        body: str | bytes | None = None,
        stream: bool = False,
    ) -> requests.Response:
        """
        Issue one request, retrying network-level failures.

        Args:
            method: HTTP method ("GET", "POST").
            url: Absolute URL.
            body: Raw request body, sent as-is.
            stream: Leave the body unread (for audio downloads).

        Returns:
            The response, whatever its status code.

        Raises:
            TransportError: If every attempt failed at the network level.
        """
        attempt = 0
        while True:
            attempt += 1
            self.limiter.acquire()
            try:
                return self.session.request(
                    method,
                    url,
                    data=body,
                    stream=stream,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    raise TransportError(
                        f"Request failed after {attempt} attempts: {e}",
                        details={"url": url, "method": method, "original_error": str(e)},
                        attempts=attempt
                    ) from e
                logger.warning(f"(network hiccup) {method} {url}: {e}")

    def get(self, url: str, stream: bool = False) -> requests.Response:
        return self.request("GET", url, stream=stream)

    def get_text(self, url: str) -> str:
        """GET a page and return its body, raising on non-200."""
        response = self.get(url)
        check_status(response, url)
        return response.text

    def get_json(self, url: str) -> Any:
        """GET a JSON endpoint and return the decoded body, raising on non-200."""
        response = self.get(url)
        check_status(response, url)
        return response.json()

    def post_json(self, url: str, payload: Any) -> Any:
        """POST a JSON-encoded payload and return the decoded body, raising on non-200."""
        response = self.request("POST", url, body=json.dumps(payload))
        check_status(response, url)
        return response.json()


def check_status(response: requests.Response, url: str) -> None:
    """
    Raise UpstreamStatusError unless the response status is 200.

    The start of the body is logged to help diagnose expired cookies or
    region blocks.
    """
    if response.status_code == 200:
        return

    preview = response.text or ""
    if len(preview) > BODY_PREVIEW_LENGTH:
        preview = preview[:BODY_PREVIEW_LENGTH] + "..."
    logger.debug(f"Non-200 response body (truncated): {preview}")

    raise UpstreamStatusError(
        f"Got status code {response.status_code}",
        details={"url": url},
        status_code=response.status_code
    )
