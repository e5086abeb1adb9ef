"""Bounded exponential-backoff retry, independent of any transport."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from src.execution.errors import ExecutionError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    RETRY = "RETRY"
    FATAL = "FATAL"


@dataclass
class AttemptResult(Generic[T]):
    """What one attempt produced."""

    attempt: int
    outcome: AttemptOutcome
    value: Optional[T] = None
    error: Optional[Exception] = None


def classify_error(error: Exception) -> AttemptOutcome:
    """Map an attempt failure to RETRY or FATAL.

    ExecutionError subclasses carry their own retryable flag. Anything else
    (HTTP, RPC, timeouts) is a transient transport fault.
    """
    if isinstance(error, ExecutionError):
        return AttemptOutcome.RETRY if error.retryable else AttemptOutcome.FATAL
    return AttemptOutcome.RETRY


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule.

    Attributes:
        max_retries: Retries after the first attempt; max_retries + 1 attempts total.
        base_delay_seconds: Delay before the first retry. Doubles for each retry after.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for_retry(self, retry: int) -> float:
        """Delay before retry number `retry` (1-based): base * 2^(retry - 1)."""
        return self.base_delay_seconds * (2 ** (retry - 1))

    def schedule(self) -> list[float]:
        """Full backoff sequence: base, 2*base, 4*base, ..."""
        return [self.delay_for_retry(k) for k in range(1, self.max_retries + 1)]


class RetryRunner:
    """Drives an operation through the retry state machine.

    Each attempt ends in SUCCESS (return the value), FATAL (raise at once)
    or RETRY (sleep per policy, then try again). When the attempt budget is
    spent the last observed error is raised.

    sleep is injectable so tests can record delays instead of waiting.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classify: Callable[[Exception], AttemptOutcome] = classify_error,
    ):
        self.policy = policy
        self._sleep = sleep
        self._classify = classify

    async def attempt(self, operation: Callable[[int], Awaitable[T]], attempt: int) -> AttemptResult[T]:
        """Run one attempt and classify how it ended."""
        try:
            value = await operation(attempt)
        except Exception as e:
            return AttemptResult(attempt=attempt, outcome=self._classify(e), error=e)
        return AttemptResult(attempt=attempt, outcome=AttemptOutcome.SUCCESS, value=value)

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        on_retry: Optional[Callable[[int, float, Exception], Awaitable[None]]] = None,
    ) -> T:
        """Run operation until it succeeds, fails fatally or exhausts retries.

        Args:
            operation: Coroutine factory receiving the 1-based attempt number.
            on_retry: Called with (retry_number, delay, last_error) before each backoff sleep.

        Returns:
            The value of the first successful attempt.

        Raises:
            Exception: The fatal error, or the last error once retries are exhausted.
        """
        for attempt in range(1, self.policy.max_attempts + 1):
            result = await self.attempt(operation, attempt)

            if result.outcome == AttemptOutcome.SUCCESS:
                return result.value

            if result.outcome == AttemptOutcome.FATAL:
                logger.error(f"Attempt {attempt} failed fatally: {result.error}")
                raise result.error

            if attempt == self.policy.max_attempts:
                logger.error(f"All {attempt} attempts failed: {result.error}")
                raise result.error

            delay = self.policy.delay_for_retry(attempt)
            logger.warning(f"Attempt {attempt} failed, retrying in {delay:g}s: {result.error}")
            if on_retry is not None:
                await on_retry(attempt, delay, result.error)
            await self._sleep(delay)

        raise RuntimeError("Retry policy allows no attempts")
