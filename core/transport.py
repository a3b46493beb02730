"""HTTP transport with exponential backoff on rate limiting.

Only HTTP 429 is retried: the first retry waits ``initial_delay`` seconds and
each further retry doubles the wait (no jitter). Every other failure, HTTP
or network, raises :class:`~core.exceptions.TransportError` straight away.
"""
import time
from typing import Any, Dict, Optional

import requests

from core.config_manager import RetrySettings
from core.exceptions import TransportError
from core.logging_utils import log_json

RATE_LIMITED = 429


class Transport:
    """Performs one JSON POST per :meth:`call`, retrying only on HTTP 429.

    Args:
        retry: Default retry budget and initial delay.
        timeout: Per-attempt socket timeout in seconds passed to ``requests``.
        headers: Extra headers sent with every request (e.g. the API key).
        session: Optional ``requests.Session``; a fresh one is created otherwise
            and closed by :meth:`close`.
    """

    def __init__(self, retry: RetrySettings = None, timeout: float = 60,
                 headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None):
        self.retry = retry or RetrySettings()
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        """Release the connection pool of a session this transport created."""
        if self._owns_session:
            self.session.close()

    def _attempt(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        try:
            response = self.session.post(endpoint, json=payload, headers=self.headers,
                                         timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {endpoint} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(f"HTTP error! status: {response.status_code}",
                                 status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Response body is not JSON (status {response.status_code})",
                                 status_code=response.status_code) from e

    def call(self, endpoint: str, payload: Dict[str, Any],
             max_retries: int = None, initial_delay: float = None) -> Any:
        """POST *payload* to *endpoint* and return the decoded JSON body.

        Makes at most ``max_retries + 1`` attempts. The wait before retry *n*
        is ``initial_delay * 2 ** (n - 1)``.

        Raises:
            TransportError: on a non-2xx status other than 429, on a network
                error, or with the last 429 once retries are exhausted.
        """
        retries = self.retry.max_retries if max_retries is None else max_retries
        delay = self.retry.initial_delay if initial_delay is None else initial_delay
        attempt = 0

        while True:
            attempt += 1
            try:
                return self._attempt(endpoint, payload)
            except TransportError as e:
                if not e.rate_limited or retries <= 0:
                    log_json("ERROR", "transport_request_failed",
                             details={"attempt": attempt, "status": e.status_code, "error": str(e)})
                    raise
                log_json("WARN", "transport_rate_limited_retrying",
                         details={"attempt": attempt, "retries_left": retries,
                                  "sleep_time": f"{delay:.2f}"})
                time.sleep(delay)
                retries -= 1
                delay *= 2
