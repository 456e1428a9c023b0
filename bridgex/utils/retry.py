"""Fixed-attempt retry combinator for remote calls.

Retry is applied explicitly at call sites: callers pass the operation, a
``RetryPolicy`` value and optionally a rate limiter to ``call_with_retry``.
There is no backoff and no jitter; every retry waits ``delay_seconds``.
"""

import functools
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from bridgex.exceptions import ResultNotReadyError
from bridgex.logging_config import get_logger
from bridgex.synapse.rate_limiter import RateLimiter

logger = get_logger("retry")

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class RetryPolicy:
    """How often and on which errors an operation is retried.

    Attributes:
        attempts: Total number of tries, including the first one
        delay_seconds: Fixed sleep between tries
        retryable: Exception types that trigger another try
    """

    attempts: int = 2
    delay_seconds: float = 0.1
    retryable: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must not be negative, got {self.delay_seconds}")

    def is_retryable(self, exc: BaseException) -> bool:
        # Not-ready is a polling outcome and never spends the retry budget.
        if isinstance(exc, ResultNotReadyError):
            return False
        return isinstance(exc, self.retryable)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    rate_limiter: Optional[RateLimiter] = None,
    name: Optional[str] = None,
) -> T:
    """Run ``operation`` under ``policy``, taking a rate-limit permit per try.

    Args:
        operation: Zero-argument callable performing one remote call
        policy: Attempts, delay and retryable error types
        rate_limiter: Limiter to acquire from before every try
        name: Label used in log messages (defaults to the callable's name)

    Returns:
        Whatever ``operation`` returns

    Raises:
        The last error once the budget is spent, or the first non-retryable
        error immediately.

    Example:
        >>> policy = RetryPolicy(attempts=2, delay_seconds=0.1)
        >>> call_with_retry(lambda: client.get_column_models(table_id), policy, limiter)
    """
    label = name or getattr(operation, "__name__", "operation")

    for attempt in range(1, policy.attempts + 1):
        if rate_limiter is not None:
            rate_limiter.acquire()
        try:
            return operation()
        except Exception as e:
            if not policy.is_retryable(e) or attempt == policy.attempts:
                raise
            logger.warning(
                f"{label} failed (attempt {attempt}/{policy.attempts}), "
                f"retrying in {policy.delay_seconds}s: {e}"
            )
            if policy.delay_seconds > 0:
                time.sleep(policy.delay_seconds)

    # attempts >= 1 is enforced by RetryPolicy, so the loop always returns or raises
    raise AssertionError("unreachable")


def retry_with_policy(policy: RetryPolicy) -> Callable[[F], F]:
    """Decorator form of ``call_with_retry`` for methods without a rate limiter.

    Example:
        @retry_with_policy(RetryPolicy(attempts=3, delay_seconds=1.0, retryable=TRANSIENT_EXCEPTIONS))
        def upload_file(...):
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return call_with_retry(lambda: func(*args, **kwargs), policy, name=func.__name__)

        return wrapper  # type: ignore

    return decorator
