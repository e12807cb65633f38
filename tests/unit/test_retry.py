"""Tests for the retry policy engine."""

import asyncio
import random

import pytest

from gemini_ai.client import CancelToken
from gemini_ai.errors import (
    Cancelled,
    DecodeFailure,
    ErrorKind,
    HttpStatusFailure,
    RateLimitExceeded,
    SafetyBlocked,
    TransportFailure,
    ValidationError,
)
from gemini_ai.resilience import RetryExecutor, RetryPolicy, with_retry


class Attempts:
    """Callable failing with the given errors, then returning a value."""

    def __init__(self, *errors: Exception, value: str = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestRetryPolicy:
    """Tests for RetryPolicy values."""

    def test_defaults(self) -> None:
        """Test default policy values."""
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0
        assert policy.multiplier == 2.0
        assert ErrorKind.TRANSPORT in policy.retryable_kinds
        assert ErrorKind.DECODE not in policy.retryable_kinds

    def test_no_retry(self) -> None:
        """Test the single-attempt policy."""
        assert RetryPolicy.no_retry().max_attempts == 1

    def test_backoff_exponential_and_capped(self) -> None:
        """Test un-jittered delays grow and stop at max_delay."""
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=5.0)
        assert [policy.backoff(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": 0},
            {"multiplier": 0.5},
            {"base_delay": 10.0, "max_delay": 5.0},
            {"jitter_fraction": 1.5},
            {"retryable_kinds": {ErrorKind.CANCELLED}},
        ],
    )
    def test_invalid_policies(self, kwargs) -> None:
        """Test invariant violations are rejected."""
        with pytest.raises(ValidationError):
            RetryPolicy(**kwargs)

    def test_from_dict(self) -> None:
        """Test building a policy from config data."""
        policy = RetryPolicy.from_dict(
            {
                "max_attempts": 5,
                "base_delay": 0.5,
                "retryable_kinds": ["transport", "RATE_LIMITED"],
                "retryable_status": [503],
            }
        )
        assert policy.max_attempts == 5
        assert policy.retryable_kinds == frozenset({ErrorKind.TRANSPORT, ErrorKind.RATE_LIMITED})
        assert policy.retryable_status == frozenset({503})

    def test_from_dict_unknown_key(self) -> None:
        """Test unknown keys are rejected."""
        with pytest.raises(ValidationError, match="max_retries"):
            RetryPolicy.from_dict({"max_retries": 3})

    def test_is_retryable(self) -> None:
        """Test the retryable classification."""
        policy = RetryPolicy()
        assert policy.is_retryable(TransportFailure("reset"))
        assert policy.is_retryable(RateLimitExceeded("slow down"))
        assert policy.is_retryable(HttpStatusFailure("down", status_code=503))
        assert not policy.is_retryable(HttpStatusFailure("bad", status_code=400))
        assert not policy.is_retryable(DecodeFailure("garbled"))
        assert not policy.is_retryable(SafetyBlocked("blocked"))
        assert not policy.is_retryable(Cancelled())
        assert not policy.is_retryable(ValueError("not ours"))


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, recording_sleep) -> None:
        """Test no waits when the first attempt succeeds."""
        attempt = Attempts()
        result = await RetryExecutor(sleep=recording_sleep).execute(attempt)
        assert result.success
        assert result.value == "ok"
        assert result.attempts == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    async def test_exactly_k_attempts(self, recording_sleep, max_attempts) -> None:
        """Test an always-retryable failure makes exactly max_attempts attempts."""
        errors = [TransportFailure("reset") for _ in range(10)]
        attempt = Attempts(*errors)
        policy = RetryPolicy(max_attempts=max_attempts, base_delay=1.0, max_delay=4.0)

        result = await RetryExecutor(policy, sleep=recording_sleep).execute(attempt)

        assert not result.success
        assert isinstance(result.error, TransportFailure)
        assert attempt.calls == max_attempts
        assert result.attempts == max_attempts
        assert len(recording_sleep.delays) == max_attempts - 1

    @pytest.mark.asyncio
    async def test_delays_are_bounded(self, recording_sleep) -> None:
        """Test every jittered delay stays within the policy bounds."""
        policy = RetryPolicy(
            max_attempts=8, base_delay=0.5, multiplier=3.0, max_delay=6.0, jitter_fraction=0.25
        )
        attempt = Attempts(*[HttpStatusFailure("down", status_code=502) for _ in range(8)])
        executor = RetryExecutor(policy, sleep=recording_sleep, rng=random.Random(7))

        result = await executor.execute(attempt)

        assert result.delays == recording_sleep.delays
        for n, delay in enumerate(recording_sleep.delays, start=1):
            nominal = policy.backoff(n)
            assert 0 <= delay <= policy.max_delay * 1.25
            assert nominal * 0.75 <= delay <= nominal * 1.25

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self, recording_sleep) -> None:
        """Test a non-retryable error ends the call after one attempt."""
        attempt = Attempts(HttpStatusFailure("bad request", status_code=400))
        result = await RetryExecutor(sleep=recording_sleep).execute(attempt)
        assert attempt.calls == 1
        assert result.error.status_code == 400
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [501, 507, 599])
    async def test_every_5xx_retried_by_default(self, recording_sleep, status_code) -> None:
        """Test the default policy agrees with HttpStatusFailure.retryable for all 5xx."""
        errors = [HttpStatusFailure("server error", status_code=status_code) for _ in range(3)]
        attempt = Attempts(*errors)

        result = await RetryExecutor(
            RetryPolicy(max_attempts=3), sleep=recording_sleep
        ).execute(attempt)

        assert errors[0].retryable
        assert result.attempts == 3
        assert attempt.calls == 3

    @pytest.mark.asyncio
    async def test_retry_after_hint_overrides_backoff(self, recording_sleep) -> None:
        """Test a 429 with a 2s hint waits at least 2s although backoff says 1s."""
        attempt = Attempts(RateLimitExceeded("quota", retry_after=2.0))
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, jitter_fraction=0.0)

        result = await RetryExecutor(policy, sleep=recording_sleep).execute(attempt)

        assert result.success
        assert attempt.calls == 2
        assert recording_sleep.delays[0] >= 2.0

    @pytest.mark.asyncio
    async def test_on_retry_callback(self, recording_sleep) -> None:
        """Test the callback sees attempt number, error and delay."""
        seen = []
        attempt = Attempts(TransportFailure("reset"))
        policy = RetryPolicy(jitter_fraction=0.0)
        await RetryExecutor(policy, sleep=recording_sleep).execute(
            attempt, on_retry=lambda n, e, d: seen.append((n, e.kind, d))
        )
        assert seen == [(1, ErrorKind.TRANSPORT, 1.0)]

    @pytest.mark.asyncio
    async def test_foreign_exceptions_propagate(self) -> None:
        """Test exceptions outside the taxonomy are not retried."""

        async def attempt():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await RetryExecutor().execute(attempt)

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self) -> None:
        """Test a cancelled token prevents any attempt."""
        token = CancelToken()
        token.cancel()
        attempt = Attempts()
        result = await RetryExecutor().execute(attempt, cancel_token=token)
        assert isinstance(result.error, Cancelled)
        assert attempt.calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self) -> None:
        """Test cancelling the token interrupts a long backoff wait."""
        token = CancelToken()
        attempt = Attempts(TransportFailure("reset"))
        policy = RetryPolicy(base_delay=30.0, max_delay=30.0)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        result = await asyncio.wait_for(
            RetryExecutor(policy).execute(attempt, cancel_token=token), timeout=5
        )
        await canceller

        assert isinstance(result.error, Cancelled)
        assert attempt.calls == 1


class TestWithRetry:
    """Tests for the with_retry helper."""

    @pytest.mark.asyncio
    async def test_returns_value(self, recording_sleep) -> None:
        """Test the value is returned after retries."""
        attempt = Attempts(TransportFailure("reset"), value="done")
        assert await with_retry(attempt, sleep=recording_sleep) == "done"

    @pytest.mark.asyncio
    async def test_raises_terminal_error(self, recording_sleep) -> None:
        """Test the terminal error is raised."""
        attempt = Attempts(*[TransportFailure("reset") for _ in range(3)])
        with pytest.raises(TransportFailure):
            await with_retry(attempt, RetryPolicy(max_attempts=3), sleep=recording_sleep)
