"""Blocking poll loop for Synapse asynchronous jobs.

Synapse runs table updates, CSV imports and queries as async jobs: a start
call returns a job token and a get call either returns the result or says
the job is still running. ``AsyncJobPoller`` turns that pair into a single
blocking call. The sleep between polls occupies the calling worker thread
for the whole loop.
"""

import time
from enum import Enum
from typing import Callable, Optional, TypeVar

from bridgex.exceptions import AsyncJobTimeoutError, ResultNotReadyError
from bridgex.logging_config import get_logger
from bridgex.synapse.rate_limiter import RateLimiter
from bridgex.utils.retry import RetryPolicy, call_with_retry

logger = get_logger(__name__)

T = TypeVar("T")


class JobState(str, Enum):
    STARTED = "STARTED"
    POLLING = "POLLING"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


class UploadJob:
    """Tracks one async job through STARTED, POLLING and a terminal state."""

    def __init__(self, job_name: str, token: str) -> None:
        self.job_name = job_name
        self.token = token
        self.state = JobState.STARTED
        self.poll_count = 0
        self.result: Optional[object] = None
        self.error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.TIMED_OUT, JobState.FAILED)

    def polling(self) -> None:
        self.state = JobState.POLLING
        self.poll_count += 1

    def succeeded(self, result: object) -> None:
        self.state = JobState.SUCCEEDED
        self.result = result

    def timed_out(self, error: AsyncJobTimeoutError) -> None:
        self.state = JobState.TIMED_OUT
        self.error = error

    def failed(self, error: BaseException) -> None:
        self.state = JobState.FAILED
        self.error = error


class AsyncJobPoller:
    """Runs start/poll pairs with a fixed interval and attempt limit.

    Both the start call and every poll go through ``call_with_retry`` with the
    same policy and limiter. A not-ready answer is never retried by that
    combinator; it only moves the loop on to its next attempt.

    Attributes:
        interval_millis: Sleep before each poll, 0 disables sleeping
        max_attempts: Polls before the job times out
        retry_policy: Policy for start calls and for errors raised by a poll
        rate_limiter: Limiter shared with other Synapse calls

    Example:
        >>> poller = AsyncJobPoller(1000, 300, RetryPolicy(), RateLimiter.per_second(10))
        >>> rows = poller.run(
        ...     lambda: client.start_csv_import(table_id, file_handle_id),
        ...     lambda token: client.get_csv_import_result(table_id, token),
        ...     job_name="csv import",
        ... )
    """

    def __init__(
        self,
        interval_millis: int,
        max_attempts: int,
        retry_policy: RetryPolicy,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.interval_millis = interval_millis
        self.max_attempts = max_attempts
        self.retry_policy = retry_policy
        self.rate_limiter = rate_limiter
        self._sleep = sleep

    def start(self, start: Callable[[], str], job_name: str) -> UploadJob:
        """Start a job and return its tracker."""
        token = call_with_retry(start, self.retry_policy, self.rate_limiter, name=f"start {job_name}")
        logger.debug(f"Started {job_name} job {token}")
        return UploadJob(job_name, token)

    def wait(self, job: UploadJob, poll: Callable[[str], T]) -> T:
        """Poll a started job until it returns, fails or times out.

        Raises:
            AsyncJobTimeoutError: after ``max_attempts`` not-ready answers
            Any error from ``poll`` that survives the retry policy
        """
        for _ in range(self.max_attempts):
            if self.interval_millis > 0:
                self._sleep(self.interval_millis / 1000.0)

            job.polling()
            try:
                result = call_with_retry(
                    lambda: poll(job.token),
                    self.retry_policy,
                    self.rate_limiter,
                    name=f"poll {job.job_name}",
                )
            except ResultNotReadyError:
                continue
            except Exception as e:
                job.failed(e)
                logger.error(f"{job.job_name} job {job.token} failed: {e}")
                raise

            job.succeeded(result)
            logger.debug(f"{job.job_name} job {job.token} finished after {job.poll_count} polls")
            return result

        timeout = AsyncJobTimeoutError(job.job_name, job.token, job.poll_count)
        job.timed_out(timeout)
        logger.error(str(timeout))
        raise timeout

    def run(self, start: Callable[[], str], poll: Callable[[str], T], job_name: str = "async") -> T:
        """Start a job and block until its result is available."""
        return self.wait(self.start(start, job_name), poll)
