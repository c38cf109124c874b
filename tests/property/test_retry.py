"""Property-based tests for retry behavior.

Delays between retries follow exponential backoff (delay_n = base_delay * 2^n),
the number of attempts never exceeds the configured limit, and per-call
overrides take precedence over the decorator defaults.
"""

import asyncio
from typing import Optional, Tuple
from unittest.mock import patch

import pytest
from hypothesis import given, settings, strategies as st

from photobooth_video.utils.errors import LedgerUnavailableError
from photobooth_video.utils.retry import with_retry

SLEEP_TARGET = "photobooth_video.utils.retry.asyncio.sleep"


class TestExponentialBackoffRetry:
    """Attempts are bounded and delays double on each retry."""

    @settings(max_examples=100, deadline=None)
    @given(
        max_attempts=st.integers(min_value=1, max_value=5),
        num_failures=st.integers(min_value=0, max_value=10),
    )
    def test_retry_attempts_not_exceed_max(self, max_attempts: int, num_failures: int) -> None:
        """Total attempts never exceed max_attempts."""
        call_count = 0

        async def mock_sleep(delay: float) -> None:
            pass

        @with_retry(max_attempts=max_attempts, base_delay=0.001)
        async def failing_func() -> str:
            nonlocal call_count
            call_count += 1
            if call_count <= num_failures:
                raise ValueError("Simulated failure")
            return "success"

        async def run_test() -> None:
            with patch(SLEEP_TARGET, mock_sleep):
                try:
                    await failing_func()
                except ValueError:
                    pass  # Expected if num_failures >= max_attempts

        asyncio.run(run_test())
        assert call_count <= max_attempts

    @settings(max_examples=100, deadline=None)
    @given(
        max_attempts=st.integers(min_value=2, max_value=5),
        base_delay=st.floats(min_value=0.001, max_value=0.05),
    )
    def test_exponential_backoff_delays(self, max_attempts: int, base_delay: float) -> None:
        """Delays follow the exponential backoff pattern."""
        recorded_delays: list = []

        async def mock_sleep(delay: float) -> None:
            recorded_delays.append(delay)

        @with_retry(max_attempts=max_attempts, base_delay=base_delay)
        async def always_fails() -> str:
            raise ValueError("Always fails")

        async def run_test() -> None:
            with patch(SLEEP_TARGET, mock_sleep):
                try:
                    await always_fails()
                except ValueError:
                    pass

        asyncio.run(run_test())

        # No delay after the last attempt
        assert len(recorded_delays) == max_attempts - 1
        for i, delay in enumerate(recorded_delays):
            expected_delay = base_delay * (2**i)
            assert abs(delay - expected_delay) < 0.0001, (
                f"Delay {i} was {delay}, expected {expected_delay}"
            )

    @settings(max_examples=100, deadline=None)
    @given(
        max_attempts=st.integers(min_value=1, max_value=5),
        success_on_attempt=st.integers(min_value=1, max_value=5),
    )
    def test_success_after_failures(self, max_attempts: int, success_on_attempt: int) -> None:
        """Function succeeds if success happens within max_attempts."""
        call_count = 0

        async def mock_sleep(delay: float) -> None:
            pass

        @with_retry(max_attempts=max_attempts, base_delay=0.001)
        async def eventually_succeeds() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < success_on_attempt:
                raise ValueError("Not yet")
            return "success"

        async def run_test() -> Tuple[Optional[str], bool]:
            with patch(SLEEP_TARGET, mock_sleep):
                try:
                    return await eventually_succeeds(), True
                except ValueError:
                    return None, False

        result, succeeded = asyncio.run(run_test())

        if success_on_attempt <= max_attempts:
            assert succeeded
            assert result == "success"
            assert call_count == success_on_attempt
        else:
            assert not succeeded
            assert call_count == max_attempts

    @settings(max_examples=50, deadline=None)
    @given(max_attempts=st.integers(min_value=1, max_value=5))
    def test_raises_last_exception_on_exhaustion(self, max_attempts: int) -> None:
        """When all attempts fail, the last exception is raised."""
        call_count = 0

        async def mock_sleep(delay: float) -> None:
            pass

        @with_retry(max_attempts=max_attempts, base_delay=0.001)
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError(f"Failure {call_count}")

        async def run_test() -> str:
            with patch(SLEEP_TARGET, mock_sleep):
                try:
                    await always_fails()
                    return ""
                except ValueError as e:
                    return str(e)

        assert asyncio.run(run_test()) == f"Failure {max_attempts}"
        assert call_count == max_attempts

    @settings(max_examples=50, deadline=None)
    @given(max_attempts=st.integers(min_value=1, max_value=5))
    def test_only_catches_specified_exceptions(self, max_attempts: int) -> None:
        """Unlisted exception types propagate on the first attempt."""
        call_count = 0

        @with_retry(
            max_attempts=max_attempts,
            base_delay=0.001,
            exceptions=(LedgerUnavailableError,),
        )
        async def raises_type_error() -> str:
            nonlocal call_count
            call_count += 1
            raise TypeError("Not caught")

        async def run_test() -> bool:
            try:
                await raises_type_error()
                return False
            except TypeError:
                return True

        assert asyncio.run(run_test())
        assert call_count == 1


class TestPerCallOverrides:
    """retry_attempts and retry_delay replace the decorator defaults."""

    @settings(max_examples=50, deadline=None)
    @given(
        default_attempts=st.integers(min_value=1, max_value=5),
        override_attempts=st.integers(min_value=1, max_value=5),
        override_delay=st.floats(min_value=0.0, max_value=0.05),
    )
    def test_overrides_take_precedence(
        self, default_attempts: int, override_attempts: int, override_delay: float
    ) -> None:
        call_count = 0
        recorded_delays: list = []

        async def mock_sleep(delay: float) -> None:
            recorded_delays.append(delay)

        @with_retry(max_attempts=default_attempts, base_delay=10.0)
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("down")

        async def run_test() -> None:
            with patch(SLEEP_TARGET, mock_sleep):
                try:
                    await always_fails(retry_attempts=override_attempts, retry_delay=override_delay)
                except ValueError:
                    pass

        asyncio.run(run_test())

        assert call_count == override_attempts
        assert recorded_delays == [override_delay * (2**i) for i in range(override_attempts - 1)]

    def test_override_kwargs_are_not_forwarded(self) -> None:
        received: dict = {}

        @with_retry(max_attempts=1)
        async def capture(**kwargs) -> dict:
            received.update(kwargs)
            return kwargs

        asyncio.run(capture(limit=3, retry_attempts=2, retry_delay=0.0))
        assert received == {"limit": 3}

    @pytest.mark.parametrize("requested", [0, -2])
    def test_non_positive_attempts_mean_a_single_try(self, requested: int) -> None:
        call_count = 0

        @with_retry(max_attempts=3, base_delay=0.0)
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("down")

        with pytest.raises(ValueError):
            asyncio.run(always_fails(retry_attempts=requested))
        assert call_count == 1
