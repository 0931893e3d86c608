"""HTTP client that retries sheet downloads with exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised once every attempt to download a sheet has failed.

    The message is the text of the last failure (``HTTP 404: Not Found``, a
    ``requests`` connection error, ...) so callers can classify it.
    """

    def __init__(self, url: str, attempts: int, last_error: BaseException):
        super().__init__(str(last_error) or type(last_error).__name__)
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class HTTPStatusError(Exception):
    """A response arrived with a status outside the 2xx/3xx range."""

    def __init__(self, status_code: int, reason: str = ""):
        super().__init__(f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}")
        self.status_code = status_code
        self.reason = reason


class ResilientFetcher:
    """Download text over HTTP, retrying every failure with exponential backoff.

    The wait before retry ``k`` (``k >= 1``) is ``base_delay * 2 ** (k - 1)``
    seconds: 1s, 2s, 4s, ... with the defaults. There is no wait before the
    first attempt and none after the last one.

    Args:
        max_attempts: Total attempts per fetch (default: 3)
        base_delay: Wait before the first retry in seconds (default: 1.0)
        timeout: Per-request timeout in seconds (default: 15)
        session: Optional requests.Session to reuse
        sleep: Delay function, replaceable in tests
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self.sleep = sleep

    def backoff(self, attempt: int) -> float:
        """Seconds to wait before 0-indexed *attempt*."""
        if attempt <= 0:
            return 0.0
        return self.base_delay * (2 ** (attempt - 1))

    def _get_text(self, url: str) -> str:
        response = self.session.get(url, timeout=self.timeout)
        # requests follows redirects, so anything outside 2xx/3xx is a failure
        if not 200 <= response.status_code < 400:
            raise HTTPStatusError(response.status_code, response.reason or "")
        return response.text

    def fetch(self, url: str, max_attempts: Optional[int] = None) -> str:
        """Return the body of *url* as text.

        Raises:
            FetchError: After ``max_attempts`` consecutive failures, wrapping
                the last one.
        """
        attempts = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            if attempt:
                self.sleep(self.backoff(attempt))
            try:
                return self._get_text(url)
            except Exception as e:
                # Retried regardless of failure type
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{attempts} for {url} failed: {e}")

        logger.error(f"Giving up on {url} after {attempts} attempt(s): {last_error}")
        raise FetchError(url, attempts, last_error)

    def close(self):
        """Close the underlying session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["FetchError", "HTTPStatusError", "ResilientFetcher"]
