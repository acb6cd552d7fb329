"""Unit tests for the bounded retry utility."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from maddox.client.retry import RetryPolicy, retry_async


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryPolicy:
    def test_delay_grows_with_backoff(self) -> None:
        policy = RetryPolicy(max_attempts=3, delay=0.5, backoff=2.0)

        assert policy.delay_before(1) == 0.5
        assert policy.delay_before(2) == 1.0

    @pytest.mark.parametrize(
        "kwargs", [{"max_attempts": 0}, {"delay": -1.0}, {"backoff": 0.5}]
    )
    def test_invalid_policy_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_returns_first_success(self) -> None:
        """Test a successful first attempt is not retried."""
        calls: list[int] = []

        async def operation(attempt: int) -> str:
            calls.append(attempt)
            return "ok"

        result = await retry_async(operation, RetryPolicy(max_attempts=3))

        assert result == "ok"
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_stops_after_max_attempts(self) -> None:
        """Test the last error is raised and no extra attempt is made."""
        calls: list[int] = []
        sleep = RecordingSleep()

        async def operation(attempt: int) -> str:
            calls.append(attempt)
            raise RuntimeError(f"failure {attempt}")

        with pytest.raises(RuntimeError, match="failure 3"):
            await retry_async(
                operation, RetryPolicy(max_attempts=3, delay=0.5, backoff=2.0), sleep=sleep
            )

        assert calls == [1, 2, 3]
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_succeeds_after_retry(self) -> None:
        retries: list[int] = []

        async def operation(attempt: int) -> int:
            if attempt < 2:
                raise RuntimeError("flaky")
            return attempt

        result = await retry_async(
            operation,
            RetryPolicy(max_attempts=3),
            on_retry=lambda e, retry: retries.append(retry),
            sleep=RecordingSleep(),
        )

        assert result == 2
        assert retries == [1]

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self) -> None:
        calls: list[int] = []

        async def operation(attempt: int) -> None:
            calls.append(attempt)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_async(
                operation,
                RetryPolicy(max_attempts=3),
                should_retry=lambda e: not isinstance(e, ValueError),
            )

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_delay_for_overrides_policy(self) -> None:
        """Test a zero delay skips sleeping entirely."""
        sleep = RecordingSleep()

        async def operation(attempt: int) -> str:
            if attempt == 1:
                raise RuntimeError("once")
            return "ok"

        await retry_async(
            operation,
            RetryPolicy(max_attempts=2, delay=5.0),
            delay_for=lambda e, retry: 0.0,
            sleep=sleep,
        )

        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self) -> None:
        calls: list[int] = []

        async def operation(attempt: int) -> None:
            calls.append(attempt)
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await retry_async(operation, RetryPolicy(max_attempts=3))

        assert calls == [1]
