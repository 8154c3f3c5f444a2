"""
HTTP retry layer

Sends prepared requests through a requests.Session and retries transport
failures according to a RetryConfig. Only exceptions listed in the config and
responses with a retriable status are retried; everything else propagates
unmodified.
"""

import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Optional

import requests

from lime_remote.config import RetryConfig
from lime_remote.errors import RetriableResponse

logger = logging.getLogger(__name__)


class BackoffTimer:
    """Backoff interval calculator

    Pause for retry n (0-based) is ``min(interval * factor**n, max_interval)``
    plus up to ``randomness * interval`` of jitter.
    """

    def __init__(self,
                 interval: float = 0.0,
                 max_interval: float = float("inf"),
                 factor: float = 1.0,
                 randomness: float = 0.0):
        self.interval = interval
        self.max_interval = max_interval
        self.factor = factor
        self.randomness = randomness

    def delay(self, retry_index: int) -> float:
        """Get the pause before the given retry (seconds)"""
        current = min(self.interval * (self.factor ** retry_index), self.max_interval)
        return current + random.random() * self.randomness * self.interval


def _retry_after(exception: BaseException) -> Optional[float]:
    """Read the Retry-After header of a retriable response in seconds

    Both the delay-seconds and the HTTP-date forms are accepted; a date in the
    past yields 0.
    """
    if not isinstance(exception, RetriableResponse) or exception.response is None:
        return None
    value = exception.response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


class RetryingHTTP:
    """requests.Session wrapper that retries failed requests"""

    def __init__(self,
                 config: Optional[RetryConfig] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        """Initialize the retry layer

        Args:
            config: Retry configuration (defaults to RetryConfig())
            session: Session used to send requests; one is created when omitted
            timeout: Per-attempt timeout in seconds passed to requests
        """
        self.config = config or RetryConfig()
        self.session = session or requests.Session()
        self.timeout = timeout
        self.backoff = BackoffTimer(
            interval=self.config.interval,
            max_interval=self.config.max_interval,
            factor=self.config.backoff_factor,
            randomness=self.config.interval_randomness,
        )

    def close(self):
        """Close the underlying session"""
        self.session.close()

    def post(self, url: str, data: str, headers: Dict[str, str]) -> requests.Response:
        """POST data to url, retrying per configuration

        Args:
            url: Target URL
            data: Request body
            headers: Request headers

        Returns:
            requests.Response: The final response. When retries are exhausted on a
            retriable status, the last response is returned.
        """
        request = self.session.prepare_request(
            requests.Request("POST", url, data=data, headers=headers)
        )
        return self.send(request)

    def send(self, request: requests.PreparedRequest) -> requests.Response:
        """Send a prepared request, retrying per configuration"""
        config = self.config
        retries = config.max
        retriable = config.exceptions + (RetriableResponse,)

        while True:
            try:
                response = self.session.send(request, timeout=self.timeout)
                if response.status_code in config.retry_statuses:
                    raise RetriableResponse(response=response, request=request)
                return response
            except retriable as e:
                if retries > 0 and self._should_retry(request, e):
                    retries -= 1
                    sleep_amount = self._sleep_amount(retries + 1, e)
                    if sleep_amount is not None:
                        config.retry_block(request, config, retries, e)
                        logger.warning(
                            f"Retrying {request.method} {request.url} in {sleep_amount:.2f}s "
                            f"({config.max - retries}/{config.max}): {e!r}"
                        )
                        time.sleep(sleep_amount)
                        continue
                if isinstance(e, RetriableResponse):
                    return e.response
                raise

    def _should_retry(self, request: requests.PreparedRequest, exception: BaseException) -> bool:
        method = (request.method or "").lower()
        return method in self.config.methods or bool(self.config.retry_if(request, exception))

    def _sleep_amount(self, retries: int, exception: BaseException) -> Optional[float]:
        retry_interval = self.backoff.delay(self.config.max - retries)
        retry_after = _retry_after(exception)
        if retry_after is not None and retry_after > self.config.max_interval:
            return None
        if retry_after is not None and retry_after >= retry_interval:
            return retry_after
        return retry_interval
