"""
Configuration settings for the LimeSurvey RemoteControl client
"""
import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Type

import requests

from .errors import RetriableResponse


IDEMPOTENT_METHODS: FrozenSet[str] = frozenset({"delete", "get", "head", "options", "put"})

DEFAULT_RETRY_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    requests.exceptions.Timeout,
    RetriableResponse,
)


def _never_retry(request, exception) -> bool:
    return False


def _noop_retry_block(request, config, retries, exception) -> None:
    return None


@dataclass
class RetryConfig:
    """Configuration for the HTTP retry layer

    Attributes:
        max: Maximum number of retries after the first attempt
        interval: Pause in seconds before the first retry
        interval_randomness: Fraction (0-1) of ``interval`` added at random to each pause
        max_interval: Upper limit for the computed pause
        backoff_factor: Multiplier applied to the pause for each successive retry
        exceptions: Exception classes that count as retriable failures
        methods: HTTP verbs (lowercase) retried without consulting ``retry_if``
        retry_statuses: HTTP status codes turned into retriable failures
        retry_if: ``retry_if(request, exception)`` decides whether to retry other verbs
        retry_block: ``retry_block(request, config, retries_left, exception)`` runs before each retry
    """
    max: int = 2
    interval: float = 0.0
    interval_randomness: float = 0.0
    max_interval: float = float("inf")
    backoff_factor: float = 1.0
    exceptions: Tuple[Type[BaseException], ...] = DEFAULT_RETRY_EXCEPTIONS
    methods: FrozenSet[str] = IDEMPOTENT_METHODS
    retry_statuses: Tuple[int, ...] = ()
    retry_if: Callable[[Any, BaseException], bool] = _never_retry
    retry_block: Callable[[Any, "RetryConfig", int, BaseException], None] = _noop_retry_block

    def __post_init__(self):
        if self.max < 0:
            raise ValueError(f"max must not be negative: {self.max}")
        if not 0 <= self.interval_randomness <= 1:
            raise ValueError(f"interval_randomness must be between 0 and 1: {self.interval_randomness}")
        self.exceptions = tuple(self.exceptions)
        for exc in self.exceptions:
            if not (isinstance(exc, type) and issubclass(exc, BaseException)):
                raise ValueError(f"exceptions must be exception classes: {exc!r}")
        self.methods = frozenset(m.lower() for m in self.methods)
        self.retry_statuses = tuple(self.retry_statuses)

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]]) -> "RetryConfig":
        """Create config from an options mapping

        Args:
            options: Mapping of option names to values; None means defaults

        Returns:
            RetryConfig: The resulting configuration

        Raises:
            ValueError: An option name is not recognized
        """
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown retry options: {', '.join(unknown)}")
        return cls(**options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the plain-valued options to a dictionary"""
        return {
            "max": self.max,
            "interval": self.interval,
            "interval_randomness": self.interval_randomness,
            "max_interval": self.max_interval,
            "backoff_factor": self.backoff_factor,
            "exceptions": [exc.__name__ for exc in self.exceptions],
            "methods": sorted(self.methods),
            "retry_statuses": list(self.retry_statuses),
        }


@dataclass
class ClientConfig:
    """Main configuration for the RemoteControl client"""
    endpoint: str
    username: str
    password: str
    timeout: Optional[float] = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Tracing configuration
    enable_tracing: bool = False
    service_name: str = "lime_remote"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create config from environment variables

        Raises:
            ValueError: A required variable is missing
        """
        missing = [
            name for name in ("LIMESURVEY_ENDPOINT", "LIMESURVEY_ACCOUNT", "LIMESURVEY_PASSWORD")
            if not os.getenv(name)
        ]
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")

        retry = RetryConfig(
            max=int(os.getenv("LIMESURVEY_RETRY_MAX", "2")),
            interval=float(os.getenv("LIMESURVEY_RETRY_INTERVAL", "0")),
            backoff_factor=float(os.getenv("LIMESURVEY_RETRY_BACKOFF_FACTOR", "1")),
        )
        timeout = os.getenv("LIMESURVEY_TIMEOUT")
        return cls(
            endpoint=os.environ["LIMESURVEY_ENDPOINT"],
            username=os.environ["LIMESURVEY_ACCOUNT"],
            password=os.environ["LIMESURVEY_PASSWORD"],
            timeout=float(timeout) if timeout else 30.0,
            retry=retry,
            enable_tracing=os.getenv("LIMESURVEY_ENABLE_TRACING", "").lower() in ("1", "true", "yes"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging; the password is left out"""
        return {
            "endpoint": self.endpoint,
            "username": self.username,
            "timeout": self.timeout,
            "retry": self.retry.to_dict(),
            "enable_tracing": self.enable_tracing,
            "service_name": self.service_name,
        }
