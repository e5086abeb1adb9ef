"""Tests for the retry state machine."""

import pytest

from src.execution.errors import InsufficientBalanceError, OrderSubmissionError, TransactionRevertedError
from src.execution.retry import AttemptOutcome, RetryPolicy, RetryRunner, classify_error


class RecordingSleep:
    """Collects requested delays instead of sleeping."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FlakyOperation:
    """Raises the queued errors in order, then returns value."""

    def __init__(self, errors: list[Exception], value: str = "ok"):
        self.errors = list(errors)
        self.value = value
        self.attempts: list[int] = []

    async def __call__(self, attempt: int) -> str:
        self.attempts.append(attempt)
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_default_schedule(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 4
        assert policy.schedule() == [1.0, 2.0, 4.0]

    def test_custom_base(self):
        assert RetryPolicy(max_retries=2, base_delay_seconds=0.5).schedule() == [0.5, 1.0]

    def test_zero_retries(self):
        policy = RetryPolicy(max_retries=0)

        assert policy.max_attempts == 1
        assert policy.schedule() == []


class TestClassifyError:
    """Tests for classify_error."""

    def test_retryable_execution_errors(self):
        assert classify_error(OrderSubmissionError("busy")) == AttemptOutcome.RETRY
        assert classify_error(TransactionRevertedError("0xabc")) == AttemptOutcome.RETRY

    def test_fatal_execution_errors(self):
        assert classify_error(InsufficientBalanceError("USDC", 1.0, 5.0)) == AttemptOutcome.FATAL

    def test_unknown_errors_are_transient(self):
        assert classify_error(ConnectionError("reset")) == AttemptOutcome.RETRY


class TestRetryRunner:
    """Tests for RetryRunner.run."""

    @pytest.mark.asyncio
    async def test_first_attempt_success_never_sleeps(self):
        sleep = RecordingSleep()
        operation = FlakyOperation([])

        result = await RetryRunner(RetryPolicy(), sleep=sleep).run(operation)

        assert result == "ok"
        assert operation.attempts == [1]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self):
        sleep = RecordingSleep()
        operation = FlakyOperation([ConnectionError("a"), OrderSubmissionError("b")])
        retries = []

        async def on_retry(retry, delay, error):
            retries.append((retry, delay, str(error)))

        result = await RetryRunner(RetryPolicy(), sleep=sleep).run(operation, on_retry=on_retry)

        assert result == "ok"
        assert operation.attempts == [1, 2, 3]
        assert sleep.delays == [1.0, 2.0]
        assert retries == [(1, 1.0, "a"), (2, 2.0, "b")]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self):
        """Test attempts are bounded at max_retries + 1."""
        sleep = RecordingSleep()
        errors = [OrderSubmissionError(f"fail {i}") for i in range(10)]
        operation = FlakyOperation(errors)

        with pytest.raises(OrderSubmissionError, match="fail 3"):
            await RetryRunner(RetryPolicy(max_retries=3), sleep=sleep).run(operation)

        assert operation.attempts == [1, 2, 3, 4]
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_fatal_error_stops_immediately(self):
        sleep = RecordingSleep()
        operation = FlakyOperation([InsufficientBalanceError("MATIC", 0.0, 0.01)])

        with pytest.raises(InsufficientBalanceError):
            await RetryRunner(RetryPolicy(), sleep=sleep).run(operation)

        assert operation.attempts == [1]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_attempt_reports_outcome(self):
        runner = RetryRunner(RetryPolicy())

        result = await runner.attempt(FlakyOperation([ValueError("x")]), 2)

        assert result.attempt == 2
        assert result.outcome == AttemptOutcome.RETRY
        assert isinstance(result.error, ValueError)
        assert result.value is None
